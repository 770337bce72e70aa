from __future__ import annotations

"""
Module data model: manifest, source location, vault records.

Version references are a discriminated union on `kind` so that exactly one
of commit/tag/branch is ever populated.
"""

import os
import re
from typing import Annotated, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bespoke.core.errors import ParseError


COMMIT_HASH_LENGTH = 40
_HEX_RE = re.compile(r"[0-9a-fA-F]{40}")


# <owner>/<repo>/<branch|tag|commit>/path/to/module/metadata.json
MetadataURL = str

# <author>/<name>
Identifier = str


def parse_identifier(identifier: Identifier) -> Tuple[str, str]:
    """
    Split an `author/name` identifier, refusing anything that could escape
    the modules directory once joined onto it.
    """
    parts = str(identifier or "").split("/")
    if len(parts) != 2:
        raise ParseError("Identifier must look like author/name.", identifier=identifier)
    for p in parts:
        if not p or p in {".", ".."} or "\\" in p or p.strip() != p:
            raise ParseError("Identifier contains an invalid segment.", identifier=identifier)
    return parts[0], parts[1]


def module_dir(modules_root: str, identifier: Identifier) -> str:
    author, name = parse_identifier(identifier)
    return os.path.join(modules_root, author, name)


class Entries(BaseModel):
    model_config = ConfigDict(extra="ignore")

    js: Optional[str] = None
    css: Optional[str] = None
    mixin: Optional[str] = None


class Metadata(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    version: str
    authors: List[str]
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    preview: str = ""
    readme: str = ""
    entries: Entries = Field(default_factory=Entries)
    # Recorded only; nothing installs dependencies.
    dependencies: List[str] = Field(default_factory=list)
    spotify_versions: Optional[str] = Field(default=None, alias="spotifyVersions")

    @property
    def identifier(self) -> Identifier:
        author = self.authors[0] if self.authors else ""
        if not author or not self.name:
            raise ParseError("Metadata needs a name and at least one author.", name=self.name)
        identifier = f"{author}/{self.name}"
        parse_identifier(identifier)
        return identifier


class CommitRef(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["commit"] = "commit"
    commit: str

    @field_validator("commit")
    @classmethod
    def _full_hash(cls, v: str) -> str:
        if not _HEX_RE.fullmatch(v):
            raise ValueError("commit must be a 40 character hex hash")
        return v

    def ref_path(self) -> str:
        return self.commit


class TagRef(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["tag"] = "tag"
    tag: str = Field(min_length=1)

    def ref_path(self) -> str:
        return f"refs/tags/{self.tag}"


class BranchRef(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["branch"] = "branch"
    branch: str = Field(min_length=1)

    def ref_path(self) -> str:
        return f"refs/heads/{self.branch}"


VersionReference = Annotated[Union[CommitRef, TagRef, BranchRef], Field(discriminator="kind")]


class SourceLocation(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    version: VersionReference
    # Module root inside the repository tree, no leading or trailing slash.
    path: str = ""


class Module(BaseModel):
    model_config = ConfigDict(extra="forbid")

    metadata: Metadata
    source: SourceLocation

    @property
    def identifier(self) -> Identifier:
        return self.metadata.identifier


class VaultEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    identifier: str = Field(min_length=1)
    metadata_url: str = Field(alias="metadataURL", min_length=1)
    enabled: bool = False


class VaultFile(BaseModel):
    """
    Stored at <modules>/vault.json. Order is preserved on rewrite.
    """

    model_config = ConfigDict(extra="forbid")

    modules: List[VaultEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_identifiers(self) -> "VaultFile":
        seen = set()
        for m in self.modules:
            if m.identifier in seen:
                raise ValueError(f"duplicate identifier in vault: {m.identifier}")
            seen.add(m.identifier)
        return self
