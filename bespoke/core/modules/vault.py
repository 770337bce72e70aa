from __future__ import annotations

"""
Vault: persisted record of installed modules (<modules>/vault.json).

Loaded lazily on first access and rewritten in full on every mutation. A
missing or malformed file is an error; first runs create an empty vault
explicitly with Vault.create_empty(). Only one process may mutate a vault at a
time; the in-process lock does not protect against other processes.
"""

import json
import logging
import os
import threading
from typing import Dict, List, Optional

from pydantic import ValidationError

from bespoke.core.config.io import atomic_write_json
from bespoke.core.errors import FilesystemError, NotFoundError, ParseError
from bespoke.core.modules.models import Identifier, VaultEntry, VaultFile


class Vault:
    def __init__(self, path: str, *, backups_dir: Optional[str] = None, max_backups: int = 10, logger: Optional[logging.Logger] = None):
        self.path = str(path)
        self.backups_dir = backups_dir
        self.max_backups = int(max_backups)
        self.logger = logger or logging.getLogger("bespoke")
        self._lock = threading.RLock()
        self._data: Optional[VaultFile] = None

    @classmethod
    def create_empty(cls, path: str, **kwargs) -> "Vault":
        vault = cls(path, **kwargs)
        with vault._lock:
            if not os.path.exists(vault.path):
                vault._persist_locked(VaultFile())
        return vault

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    # ---- load / persist ----
    def _load_locked(self) -> VaultFile:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError as e:
            raise FilesystemError("Vault file does not exist; run `pkg init` first.", path=self.path) from e
        except (ValueError, UnicodeDecodeError) as e:
            raise ParseError("Vault file is not valid JSON.", path=self.path) from e
        except OSError as e:
            raise FilesystemError("Vault file could not be read.", path=self.path, reason=str(e)[:200]) from e
        try:
            return VaultFile.model_validate(raw)
        except ValidationError as e:
            raise ParseError("Vault file is malformed.", path=self.path, reason=str(e)[:300]) from e

    def _persist_locked(self, data: VaultFile) -> None:
        try:
            atomic_write_json(self.path, data.model_dump(by_alias=True), self.backups_dir, max_backups=self.max_backups)
        except OSError as e:
            raise FilesystemError("Vault file could not be written.", path=self.path, reason=str(e)[:200]) from e
        self._data = data

    def _current_locked(self) -> VaultFile:
        if self._data is None:
            self._data = self._load_locked()
        return self._data

    def get(self) -> VaultFile:
        with self._lock:
            return self._current_locked().model_copy(deep=True)

    def reload(self) -> VaultFile:
        with self._lock:
            self._data = None
            return self.get()

    # ---- queries ----
    def entries(self) -> List[VaultEntry]:
        return list(self.get().modules)

    def find(self, identifier: Identifier) -> Optional[VaultEntry]:
        for entry in self.get().modules:
            if entry.identifier == identifier:
                return entry
        return None

    def find_by_identifier(self, identifier: Identifier) -> str:
        entry = self.find(identifier)
        if entry is None:
            raise NotFoundError(f"No module in the vault for identifier {identifier}.", identifier=identifier)
        return entry.metadata_url

    # ---- mutations ----
    def toggle(self, identifier: Identifier, enabled: bool) -> VaultEntry:
        with self._lock:
            data = self._current_locked().model_copy(deep=True)
            for entry in data.modules:
                if entry.identifier == identifier:
                    entry.enabled = bool(enabled)
                    self._persist_locked(data)
                    return entry.model_copy()
        raise NotFoundError(f"No module in the vault for identifier {identifier}.", identifier=identifier)

    def upsert(self, identifier: Identifier, metadata_url: str, *, enabled: bool) -> VaultEntry:
        """
        Add a new entry, or point an existing one at a new metadata URL. An
        existing entry keeps its enabled flag.
        """
        with self._lock:
            data = self._current_locked().model_copy(deep=True)
            for entry in data.modules:
                if entry.identifier == identifier:
                    entry.metadata_url = metadata_url
                    break
            else:
                entry = VaultEntry(identifier=identifier, metadata_url=metadata_url, enabled=bool(enabled))
                data.modules.append(entry)
            self._persist_locked(data)
            return entry.model_copy()

    def discard(self, identifier: Identifier) -> bool:
        with self._lock:
            data = self._current_locked().model_copy(deep=True)
            kept = [e for e in data.modules if e.identifier != identifier]
            if len(kept) == len(data.modules):
                return False
            data.modules = kept
            self._persist_locked(data)
            return True


_vaults: Dict[str, Vault] = {}
_vaults_lock = threading.Lock()


def get_vault(path: str, **kwargs) -> Vault:
    """Process-wide Vault per file path."""
    key = os.path.abspath(path)
    with _vaults_lock:
        vault = _vaults.get(key)
        if vault is None:
            vault = Vault(path, **kwargs)
            _vaults[key] = vault
        return vault


def reset_vault_cache() -> None:
    with _vaults_lock:
        _vaults.clear()
