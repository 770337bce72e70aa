from __future__ import annotations

"""
ModuleManager: install / update / remove / enable / disable.

WHY THIS FILE EXISTS:
This is the single public API for module lifecycle operations. It ties the
version resolver, metadata store, archive extractor and vault together and
keeps the vault consistent with what is on disk:
- install registers the module in the vault once its files are in place
- remove drops the vault entry along with the install directory
- operations on one identifier never run concurrently
Errors are never downgraded here; they propagate to the caller.
"""

import contextlib
import logging
import os
import shutil
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional

from bespoke.core.config.models import BespokeConfig
from bespoke.core.config.paths import ConfigFsPaths
from bespoke.core.errors import BespokeError, FilesystemError, ParseError, UnsupportedError
from bespoke.core.events import EventLogger
from bespoke.core.modules.archive import untar_gz
from bespoke.core.modules.github import GitHubClient
from bespoke.core.modules.metadata import MetadataStore
from bespoke.core.modules.models import Identifier, Module, VaultEntry, module_dir, parse_identifier
from bespoke.core.modules.vault import Vault, get_vault
from bespoke.core.modules.versions import VersionResolver, normalize_metadata_url


Activator = Callable[[Identifier, bool], None]


@dataclass(frozen=True)
class UpdateResult:
    identifier: str
    changed: bool
    old_version: str
    new_version: str


@dataclass(frozen=True)
class BatchResult:
    metadata_url: str
    ok: bool
    identifier: str = ""
    error: Optional[Dict[str, Any]] = None


class _LockSlot:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class ModuleManager:
    def __init__(
        self,
        *,
        modules_root: str,
        vault: Vault,
        github: Any = None,
        cfg: Optional[BespokeConfig] = None,
        resolver: Optional[VersionResolver] = None,
        metadata_store: Optional[MetadataStore] = None,
        event_logger: Optional[EventLogger] = None,
        logger: Optional[logging.Logger] = None,
        activator: Optional[Activator] = None,
    ):
        self.cfg = cfg or BespokeConfig()
        self.modules_root = str(modules_root)
        self.vault = vault
        self.logger = logger or logging.getLogger("bespoke")
        self.github = github if github is not None else GitHubClient(cfg=self.cfg, logger=self.logger)
        self.resolver = resolver or VersionResolver(github=self.github, logger=self.logger)
        self.metadata = metadata_store or MetadataStore(github=self.github, modules_root=self.modules_root)
        self.event_logger = event_logger
        self.activator = activator
        self._locks: Dict[str, _LockSlot] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_config(
        cls,
        *,
        fs: ConfigFsPaths,
        cfg: BespokeConfig,
        logger: Optional[logging.Logger] = None,
        event_logger: Optional[EventLogger] = None,
        session: Any = None,
    ) -> "ModuleManager":
        vault = get_vault(fs.vault, backups_dir=fs.backups_dir, max_backups=cfg.vault_max_backups, logger=logger)
        return cls(
            modules_root=fs.modules_dir,
            vault=vault,
            github=GitHubClient(cfg=cfg, session=session, logger=logger),
            cfg=cfg,
            event_logger=event_logger,
            logger=logger,
        )

    # ---- helpers ----
    @contextlib.contextmanager
    def _locked(self, identifier: Identifier) -> Iterator[None]:
        """
        Serialize operations on one identifier. The slot is dropped once no
        caller holds or waits for it, so the table only tracks identifiers
        in use.
        """
        with self._locks_guard:
            slot = self._locks.get(identifier)
            if slot is None:
                slot = _LockSlot()
                self._locks[identifier] = slot
            slot.users += 1
        try:
            with slot.lock:
                yield
        finally:
            with self._locks_guard:
                slot.users -= 1
                if slot.users == 0:
                    del self._locks[identifier]

    def _emit(self, trace_id: str, event_type: str, details: Dict[str, Any]) -> None:
        if self.event_logger is None:
            return
        try:
            self.event_logger.log(trace_id, event_type, details)
        except OSError as e:
            self.logger.warning("Could not write event %s: %s", event_type, e)

    def _fail(self, trace_id: str, action: str, err: BespokeError, **details: Any) -> None:
        self.logger.error("%s failed: %s", action, err)
        self._emit(trace_id, "module.failed", {"action": action, "error": err.to_dict(), **details})

    def module_dir(self, identifier: Identifier) -> str:
        return module_dir(self.modules_root, identifier)

    @staticmethod
    def _delete_dir(path: str) -> bool:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise FilesystemError("Could not delete module directory.", path=path, reason=str(e)[:200]) from e
        return True

    def _discard_partial(self, path: str) -> None:
        try:
            self._delete_dir(path)
        except FilesystemError as e:
            self.logger.warning("Partial install left at %s: %s", path, e.user_message)

    # ---- resolution ----
    def resolve(self, metadata_url: str) -> Module:
        metadata = self.metadata.fetch_remote(metadata_url)
        source = self.resolver.resolve(metadata_url)
        return Module(metadata=metadata, source=source)

    def download(self, module: Module, *, cancel: Optional[threading.Event] = None) -> str:
        dest = self.module_dir(module.identifier)
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
        except OSError as e:
            raise FilesystemError("Could not create modules directory.", path=os.path.dirname(dest), reason=str(e)[:200]) from e
        with self.github.open_archive(module.source) as stream:
            files = untar_gz(stream, module.source.path, dest, cancel=cancel)
        self.logger.info("Extracted %d files for %s into %s", files, module.identifier, dest)
        return dest

    # ---- lifecycle ----
    def install(self, metadata_url: str, *, trace_id: str = "", cancel: Optional[threading.Event] = None) -> Module:
        try:
            return self._install(metadata_url, trace_id=trace_id or uuid.uuid4().hex, cancel=cancel)
        finally:
            self.resolver.clear_cache()

    def _install(self, metadata_url: str, *, trace_id: str, cancel: Optional[threading.Event]) -> Module:
        url = normalize_metadata_url(metadata_url)
        self.logger.info("Installing %s", url)
        # The vault must be usable before anything is downloaded.
        self.vault.get()
        try:
            module = self.resolve(url)
            identifier = module.identifier
        except BespokeError as e:
            self._fail(trace_id, "install", e, metadata_url=url)
            raise

        with self._locked(identifier):
            dest = self.module_dir(identifier)
            try:
                if os.path.exists(dest):
                    raise FilesystemError(f"{identifier} is already installed; use update.", identifier=identifier, path=dest)
                # Files and vault entry land together or not at all.
                try:
                    self.download(module, cancel=cancel)
                    existing = self.vault.find(identifier)
                    enabled = existing.enabled if existing is not None else self.cfg.enable_on_install
                    self.vault.upsert(identifier, url, enabled=enabled)
                except BespokeError:
                    self._discard_partial(dest)
                    raise
            except BespokeError as e:
                self._fail(trace_id, "install", e, identifier=identifier, metadata_url=url)
                raise

        self.logger.info("Installed %s %s", identifier, module.metadata.version)
        self._emit(trace_id, "module.installed", {"identifier": identifier, "version": module.metadata.version, "metadata_url": url})
        return module

    def install_identifier(self, identifier: Identifier, *, trace_id: str = "") -> Module:
        # Needs a monorepo index mapping identifiers to metadata URLs.
        raise UnsupportedError("Installing by identifier is not supported; pass a metadata URL.", identifier=identifier)

    def install_many(
        self,
        metadata_urls: List[str],
        *,
        max_workers: int = 4,
        trace_id: str = "",
        cancel: Optional[threading.Event] = None,
    ) -> List[BatchResult]:
        """
        Install independent modules concurrently and report per-URL outcomes
        instead of failing the whole batch.
        """
        trace_id = trace_id or uuid.uuid4().hex

        def _one(url: str) -> BatchResult:
            try:
                module = self._install(url, trace_id=trace_id, cancel=cancel)
            except BespokeError as e:
                return BatchResult(metadata_url=url, ok=False, error=e.to_dict())
            return BatchResult(metadata_url=url, ok=True, identifier=module.identifier)

        try:
            with ThreadPoolExecutor(max_workers=max(1, int(max_workers))) as pool:
                return list(pool.map(_one, metadata_urls))
        finally:
            self.resolver.clear_cache()

    def update(self, identifier: Identifier, *, trace_id: str = "", cancel: Optional[threading.Event] = None) -> UpdateResult:
        """
        Reinstall `identifier` when the remote version differs from the
        installed one.

        Not atomic: the old files are deleted before the new archive is
        fetched, so a failed download leaves the module absent (its vault
        entry stays, and install() can recover it).
        """
        trace_id = trace_id or uuid.uuid4().hex
        parse_identifier(identifier)
        try:
            with self._locked(identifier):
                return self._update_locked(identifier, trace_id=trace_id, cancel=cancel)
        except BespokeError as e:
            self._fail(trace_id, "update", e, identifier=identifier)
            raise
        finally:
            self.resolver.clear_cache()

    def _update_locked(self, identifier: Identifier, *, trace_id: str, cancel: Optional[threading.Event]) -> UpdateResult:
        metadata_url = self.vault.find_by_identifier(identifier)
        remote = self.metadata.fetch_remote(metadata_url)
        if remote.identifier != identifier:
            raise ParseError(
                "Remote metadata belongs to a different module.",
                identifier=identifier,
                remote_identifier=remote.identifier,
            )
        local = self.metadata.fetch_local(identifier)

        if remote.version == local.version:
            self.logger.info("%s is up to date (%s)", identifier, local.version)
            self._emit(trace_id, "module.update_skipped", {"identifier": identifier, "version": local.version})
            return UpdateResult(identifier=identifier, changed=False, old_version=local.version, new_version=remote.version)

        source = self.resolver.resolve(metadata_url)
        dest = self.module_dir(identifier)
        self._delete_dir(dest)
        try:
            self.download(Module(metadata=remote, source=source), cancel=cancel)
        except BespokeError:
            self._discard_partial(dest)
            self.logger.error("%s was removed but %s could not be installed; run install again", identifier, remote.version)
            raise

        self.logger.info("Updated %s %s -> %s", identifier, local.version, remote.version)
        self._emit(trace_id, "module.updated", {"identifier": identifier, "from": local.version, "to": remote.version})
        return UpdateResult(identifier=identifier, changed=True, old_version=local.version, new_version=remote.version)

    def remove(self, identifier: Identifier, *, trace_id: str = "") -> bool:
        """
        Delete the install directory and vault entry. Removing a module that
        is not on disk succeeds; returns whether a directory was deleted.
        """
        trace_id = trace_id or uuid.uuid4().hex
        parse_identifier(identifier)
        with self._locked(identifier):
            try:
                existed = self._delete_dir(self.module_dir(identifier))
                if self.vault.exists():
                    self.vault.discard(identifier)
            except BespokeError as e:
                self._fail(trace_id, "remove", e, identifier=identifier)
                raise
        self.logger.info("Removed %s%s", identifier, "" if existed else " (was not on disk)")
        self._emit(trace_id, "module.removed", {"identifier": identifier, "existed": existed})
        return existed

    def _toggle(self, identifier: Identifier, enabled: bool, *, trace_id: str) -> VaultEntry:
        trace_id = trace_id or uuid.uuid4().hex
        with self._locked(identifier):
            entry = self.vault.toggle(identifier, enabled)
            if self.activator is not None:
                self.activator(identifier, enabled)
            else:
                self.logger.info("%s marked %s in the vault; no host activator is configured", identifier, "enabled" if enabled else "disabled")
        self._emit(trace_id, "module.enabled" if enabled else "module.disabled", {"identifier": identifier})
        return entry

    def enable(self, identifier: Identifier, *, trace_id: str = "") -> VaultEntry:
        return self._toggle(identifier, True, trace_id=trace_id)

    def disable(self, identifier: Identifier, *, trace_id: str = "") -> VaultEntry:
        return self._toggle(identifier, False, trace_id=trace_id)

    # ---- queries ----
    def list_modules(self) -> List[Dict[str, Any]]:
        out: List[Dict[str, Any]] = []
        for entry in self.vault.entries():
            try:
                version = self.metadata.fetch_local(entry.identifier).version
            except BespokeError:
                version = None
            out.append(
                {
                    "identifier": entry.identifier,
                    "enabled": entry.enabled,
                    "version": version,
                    "metadata_url": entry.metadata_url,
                }
            )
        return out

    def show(self, identifier: Identifier) -> Dict[str, Any]:
        entry = self.vault.find(identifier)
        summary: Dict[str, Any]
        try:
            meta = self.metadata.fetch_local(identifier)
        except BespokeError as e:
            summary = {"ok": False, "error": e.to_dict()}
        else:
            summary = {
                "ok": True,
                "name": meta.name,
                "version": meta.version,
                "authors": list(meta.authors),
                "description": meta.description,
                "tags": list(meta.tags),
                "entries": meta.entries.model_dump(),
                "dependencies": list(meta.dependencies),
                "spotify_versions": meta.spotify_versions,
            }
        return {
            "identifier": identifier,
            "vault": entry.model_dump(by_alias=True) if entry is not None else None,
            "metadata": summary,
        }
