from __future__ import annotations

import io
import json
import tarfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union


HASH = "0123456789abcdef0123456789abcdef01234567"


class FakeResponse:
    def __init__(self, *, status_code: int = 200, content: bytes = b"", links: Optional[Dict[str, Dict[str, str]]] = None):
        self.status_code = status_code
        self.content = content
        self.links = links or {}
        self.raw = io.BytesIO(content)
        self.closed = False

    def json(self) -> Any:
        return json.loads(self.content.decode("utf-8"))

    def close(self) -> None:
        self.closed = True


@dataclass
class FakeCall:
    url: str
    params: Optional[Dict[str, Any]]
    headers: Dict[str, str]
    stream: bool


@dataclass
class FakeSession:
    """
    requests.Session stand-in. Routes map a URL to a response, an exception
    instance, or a list of those consumed in order.
    """

    routes: Dict[str, Any] = field(default_factory=dict)
    calls: List[FakeCall] = field(default_factory=list)

    def add(self, url: str, response: Any) -> None:
        self.routes[url] = response

    def get(self, url: str, *, params=None, headers=None, timeout=None, stream=False):  # noqa: ANN001
        self.calls.append(FakeCall(url=url, params=params, headers=dict(headers or {}), stream=bool(stream)))
        route = self.routes.get(url)
        if isinstance(route, list):
            route = route.pop(0) if route else None
        if route is None:
            return FakeResponse(status_code=404, content=b"Not Found")
        if isinstance(route, BaseException):
            raise route
        return route

    def urls(self) -> List[str]:
        return [c.url for c in self.calls]


def json_response(obj: Any, **kwargs: Any) -> FakeResponse:
    return FakeResponse(content=json.dumps(obj).encode("utf-8"), **kwargs)


def metadata_doc(
    name: str = "foo",
    *,
    version: str = "1.0.0",
    authors: Sequence[str] = ("octo",),
    **extra: Any,
) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "name": name,
        "version": version,
        "authors": list(authors),
        "description": f"{name} module",
        "tags": [],
        "entries": {"js": "index.js"},
        "dependencies": [],
    }
    doc.update(extra)
    return doc


TarEntry = Tuple[str, Union[bytes, None]]


def make_tarball(entries: Sequence[TarEntry]) -> bytes:
    """
    Build a tar.gz in memory. A None payload makes a directory entry.
    """
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, payload in entries:
            info = tarfile.TarInfo(name)
            if payload is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            else:
                info.size = len(payload)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(payload))
    return buf.getvalue()


def module_tarball(wrapper: str, subpath: str, metadata: Dict[str, Any], files: Optional[Dict[str, bytes]] = None) -> bytes:
    """
    Repository tarball holding one module at `subpath` (no subdirectories
    besides the ones on the way to it).
    """
    entries: List[TarEntry] = [(wrapper + "/", None)]
    prefix = wrapper
    for seg in [s for s in subpath.split("/") if s]:
        prefix = f"{prefix}/{seg}"
        entries.append((prefix + "/", None))
    entries.append((f"{prefix}/metadata.json", json.dumps(metadata).encode("utf-8")))
    for rel, payload in (files or {}).items():
        entries.append((f"{prefix}/{rel}", payload))
    return make_tarball(entries)


@dataclass
class RecordingLogger:
    """Collects (level, rendered message) pairs instead of emitting them."""

    records: List[Tuple[str, str]] = field(default_factory=list)

    def _add(self, level: str, msg: str, *args: Any) -> None:
        self.records.append((level, msg % args if args else msg))

    def info(self, msg: str, *args: Any, **_kw: Any) -> None:
        self._add("INFO", msg, *args)

    def warning(self, msg: str, *args: Any, **_kw: Any) -> None:
        self._add("WARNING", msg, *args)

    def error(self, msg: str, *args: Any, **_kw: Any) -> None:
        self._add("ERROR", msg, *args)

    def messages(self, level: str) -> List[str]:
        return [m for lvl, m in self.records if lvl == level]
