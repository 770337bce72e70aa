from __future__ import annotations

"""
Version disambiguation for metadata URLs.

The ref segment of a metadata URL is an opaque string. It is classified in a
fixed order: 40 characters means a commit, a live branch name means a branch,
anything else is a (percent-encoded) tag. A wrong tag is only discovered when
the archive download fails.
"""

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import unquote

from pydantic import ValidationError

from bespoke.core.errors import ParseError
from bespoke.core.modules.models import (
    COMMIT_HASH_LENGTH,
    BranchRef,
    CommitRef,
    SourceLocation,
    TagRef,
    VersionReference,
)


_METADATA_URL_RE = re.compile(r"^(?P<owner>[^/]+)/(?P<repo>[^/]+)/(?P<version>[^/]+)/(?:(?P<path>.*?)/)?metadata\.json$")
_RAW_PREFIX_RE = re.compile(r"^https?://raw\.githubusercontent\.com/", re.IGNORECASE)
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class ParsedMetadataURL:
    owner: str
    repo: str
    version: str
    path: str


def normalize_metadata_url(metadata_url: str) -> str:
    url = _RAW_PREFIX_RE.sub("", str(metadata_url or "").strip())
    return url.lstrip("/")


def parse_metadata_url(metadata_url: str) -> ParsedMetadataURL:
    url = normalize_metadata_url(metadata_url)
    m = _METADATA_URL_RE.match(url)
    if m is None:
        raise ParseError("Metadata URL must look like owner/repo/ref/path/metadata.json.", metadata_url=metadata_url)
    return ParsedMetadataURL(
        owner=m.group("owner"),
        repo=m.group("repo"),
        version=m.group("version"),
        path=(m.group("path") or "").strip("/"),
    )


def decode_tag(v: str) -> str:
    if _BAD_ESCAPE_RE.search(v):
        raise ParseError("Tag contains a malformed percent escape.", version=v)
    try:
        return unquote(v, errors="strict")
    except UnicodeDecodeError as e:
        raise ParseError("Tag does not decode to UTF-8.", version=v) from e


def classify_version(v: str, branches: Iterable[str]) -> VersionReference:
    if len(v) == COMMIT_HASH_LENGTH:
        try:
            return CommitRef(commit=v)
        except ValidationError as e:
            raise ParseError("40 character ref is not a hex commit hash.", version=v) from e
    if v in set(branches):
        return BranchRef(branch=v)
    return TagRef(tag=decode_tag(v))


class VersionResolver:
    """
    Resolves metadata URLs into SourceLocations.

    Branch lists are cached per (owner, repo) until clear_cache() so a batch of
    modules from one repository costs a single listing.
    """

    def __init__(self, *, github: Any, logger: Optional[logging.Logger] = None):
        self.github = github
        self.logger = logger or logging.getLogger("bespoke")
        self._lock = threading.Lock()
        self._branches: Dict[Tuple[str, str], List[str]] = {}

    def clear_cache(self) -> None:
        with self._lock:
            self._branches.clear()

    def branches(self, owner: str, repo: str) -> List[str]:
        key = (owner, repo)
        with self._lock:
            cached = self._branches.get(key)
        if cached is not None:
            return cached
        names = list(self.github.list_branches(owner, repo))
        self.logger.info("Listed %d branches for %s/%s", len(names), owner, repo)
        with self._lock:
            self._branches[key] = names
        return names

    def resolve_version(self, owner: str, repo: str, v: str) -> VersionReference:
        # Commits never need the branch listing.
        if len(v) == COMMIT_HASH_LENGTH:
            return classify_version(v, ())
        return classify_version(v, self.branches(owner, repo))

    def resolve(self, metadata_url: str) -> SourceLocation:
        parsed = parse_metadata_url(metadata_url)
        version = self.resolve_version(parsed.owner, parsed.repo, parsed.version)
        return SourceLocation(owner=parsed.owner, repo=parsed.repo, version=version, path=parsed.path)
