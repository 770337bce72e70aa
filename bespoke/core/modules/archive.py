from __future__ import annotations

"""
Selective tar.gz extraction.

Repository tarballs always wrap their contents in a single top-level folder
(`<repo>-<ref>/`). Only entries under `<wrapper>/<subpath>` are written, with
that prefix stripped, so a module living inside a larger repository lands
directly in its install directory.
"""

import os
import re
import shutil
import tarfile
import threading
import zlib
from typing import Any, Optional

from bespoke.core.errors import CancelledError, FilesystemError, ParseError


def entry_pattern(subpath: str) -> "re.Pattern[str]":
    """
    Match `<wrapper>/<subpath>` followed by nothing or a `/...` suffix; the
    suffix is captured as `rest`. The subpath only matches whole segments.
    """
    sub = str(subpath or "").strip("/")
    if not sub:
        return re.compile(r"^[^/]+(?P<rest>/.*)?$")
    return re.compile(r"^[^/]+/" + re.escape(sub) + r"(?P<rest>/.*)?$")


def _target_path(dest_abs: str, rest: str, *, entry: str) -> str:
    rel = rest.strip("/")
    if not rel:
        return dest_abs
    target = os.path.normpath(os.path.join(dest_abs, rel))
    if not target.startswith(dest_abs + os.sep):
        raise FilesystemError("Archive entry escapes the install directory.", entry=entry)
    return target


def untar_gz(stream: Any, subpath: str, dest: str, *, cancel: Optional[threading.Event] = None) -> int:
    """
    Stream-extract `subpath` of a gzip tarball into `dest`; returns the number
    of regular files written.

    Directories are created one level at a time, so the archive must list a
    directory before its contents and `dest` itself must not exist yet. Only
    directories and regular files are materialized. Any failure aborts the
    extraction and leaves whatever was already written in place.
    """
    pattern = entry_pattern(subpath)
    dest_abs = os.path.abspath(dest)
    written = 0
    try:
        with tarfile.open(fileobj=stream, mode="r|gz") as tar:
            for member in tar:
                if cancel is not None and cancel.is_set():
                    raise CancelledError("Extraction cancelled.", dest=dest)
                m = pattern.match(member.name)
                if m is None:
                    continue
                target = _target_path(dest_abs, m.group("rest") or "", entry=member.name)
                if member.isdir():
                    os.mkdir(target, 0o755)
                elif member.isreg():
                    src = tar.extractfile(member)
                    with open(target, "wb") as out:
                        if src is not None:
                            shutil.copyfileobj(src, out)
                    written += 1
    except (tarfile.TarError, zlib.error, EOFError) as e:
        raise ParseError("Module archive is not a valid tar.gz.", dest=dest, reason=str(e)[:200]) from e
    except OSError as e:
        raise FilesystemError("Could not write module files.", dest=dest, path=getattr(e, "filename", None), reason=str(e)[:200]) from e
    return written
