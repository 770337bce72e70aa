from __future__ import annotations

import os
import sys
from dataclasses import dataclass


def default_root() -> str:
    """
    Per-user bespoke directory. BESPOKE_ROOT overrides platform detection.
    """
    override = os.environ.get("BESPOKE_ROOT")
    if override:
        return override
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or os.path.expanduser("~")
        return os.path.join(base, "bespoke")
    if sys.platform == "darwin":
        return os.path.join(os.path.expanduser("~"), "Library", "Application Support", "bespoke")
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return os.path.join(xdg, "bespoke")
    return os.path.join(os.path.expanduser("~"), ".config", "bespoke")


@dataclass(frozen=True)
class ConfigFsPaths:
    root: str = "."

    @property
    def config_dir(self) -> str:
        return os.path.join(self.root, "config")

    @property
    def backups_dir(self) -> str:
        return os.path.join(self.config_dir, "backups")

    @property
    def logs_dir(self) -> str:
        return os.path.join(self.root, "logs")

    @property
    def modules_dir(self) -> str:
        return os.path.join(self.root, "modules")

    # Files
    @property
    def config_file(self) -> str:
        return os.path.join(self.config_dir, "bespoke.json")

    @property
    def vault(self) -> str:
        return os.path.join(self.modules_dir, "vault.json")

    @property
    def events(self) -> str:
        return os.path.join(self.logs_dir, "events.jsonl")
