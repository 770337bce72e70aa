"""
Module manager: resolve, download and track host application modules.

Modules are fetched from GitHub by metadata URL
(`owner/repo/ref/path/metadata.json`), extracted into
`<modules>/<author>/<name>` and recorded in `<modules>/vault.json`.
"""

from bespoke.core.modules.manager import BatchResult, ModuleManager, UpdateResult

__all__ = ["BatchResult", "ModuleManager", "UpdateResult"]
