from __future__ import annotations

import json
import os
from typing import Any, Union

from pydantic import ValidationError

from bespoke.core.errors import FilesystemError, ParseError
from bespoke.core.modules.models import Identifier, Metadata, module_dir
from bespoke.core.modules.versions import normalize_metadata_url


METADATA_FILE = "metadata.json"


def parse_metadata(raw: Union[bytes, str], *, source: str = "") -> Metadata:
    try:
        obj = json.loads(raw)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError("Module metadata is not valid JSON.", source=source) from e
    if not isinstance(obj, dict):
        raise ParseError("Module metadata is not an object.", source=source)
    try:
        return Metadata.model_validate(obj)
    except ValidationError as e:
        raise ParseError("Module metadata is missing required fields.", source=source, reason=str(e)[:300]) from e


class MetadataStore:
    """
    Read-only access to module manifests, remote or installed. Nothing is
    cached; every call goes back to the source.
    """

    def __init__(self, *, github: Any, modules_root: str):
        self.github = github
        self.modules_root = str(modules_root)

    def fetch_remote(self, metadata_url: str) -> Metadata:
        url = normalize_metadata_url(metadata_url)
        return parse_metadata(self.github.fetch_raw(url), source=url)

    def local_path(self, identifier: Identifier) -> str:
        return os.path.join(module_dir(self.modules_root, identifier), METADATA_FILE)

    def fetch_local(self, identifier: Identifier) -> Metadata:
        path = self.local_path(identifier)
        try:
            with open(path, "rb") as f:
                raw = f.read()
        except OSError as e:
            raise FilesystemError("Installed module metadata could not be read.", path=path, reason=str(e)[:200]) from e
        return parse_metadata(raw, source=path)
