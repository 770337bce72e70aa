from __future__ import annotations

import contextlib
import logging
from typing import Any, Dict, Iterator, List, Optional
from urllib.parse import quote

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from bespoke import __version__
from bespoke.core.config.models import BespokeConfig
from bespoke.core.errors import NetworkError, ParseError
from bespoke.core.modules.models import SourceLocation


class _ArchiveStream:
    """
    File-like view over a streamed response body. Read failures surface as
    NetworkError so the extractor can tell them apart from disk errors.
    """

    def __init__(self, raw: Any, *, url: str):
        self._raw = raw
        self._url = url

    def read(self, size: int = -1) -> bytes:
        try:
            return self._raw.read(size)
        except (requests.RequestException, Urllib3HTTPError, OSError) as e:
            raise NetworkError("Archive download was interrupted.", url=self._url, reason=str(e)[:200]) from e


class GitHubClient:
    """
    Thin wrapper over the three GitHub endpoints the installer needs:
    branch listing (REST API), raw file contents, and repository tarballs.
    """

    def __init__(self, *, cfg: Optional[BespokeConfig] = None, session: Any = None, logger: Optional[logging.Logger] = None):
        self.cfg = cfg or BespokeConfig()
        self.logger = logger or logging.getLogger("bespoke")
        self.session = session if session is not None else requests.Session()

    def _headers(self, *, api: bool) -> Dict[str, str]:
        headers = {"User-Agent": f"bespoke/{__version__}"}
        if api:
            headers["Accept"] = "application/vnd.github+json"
            if self.cfg.github_token:
                headers["Authorization"] = f"Bearer {self.cfg.github_token}"
        return headers

    def _get(self, url: str, *, params: Optional[Dict[str, Any]] = None, api: bool = False, stream: bool = False) -> Any:
        try:
            r = self.session.get(
                url,
                params=params,
                headers=self._headers(api=api),
                timeout=self.cfg.http_timeout_seconds,
                stream=stream,
            )
        except requests.RequestException as e:
            raise NetworkError("Request to GitHub failed.", url=url, reason=str(e)[:200]) from e
        if not 200 <= int(r.status_code) < 300:
            r.close()
            raise NetworkError(f"GitHub answered HTTP {r.status_code}.", url=url, status=int(r.status_code))
        return r

    # ---- URLs ----
    def raw_url(self, metadata_url: str) -> str:
        return f"{self.cfg.raw_base_url.rstrip('/')}/{metadata_url.lstrip('/')}"

    def archive_url(self, source: SourceLocation) -> str:
        ref = quote(source.version.ref_path(), safe="/")
        return f"{self.cfg.archive_base_url.rstrip('/')}/{source.owner}/{source.repo}/archive/{ref}.tar.gz"

    def branches_url(self, owner: str, repo: str) -> str:
        return f"{self.cfg.github_api_url.rstrip('/')}/repos/{owner}/{repo}/branches"

    # ---- endpoints ----
    def list_branches(self, owner: str, repo: str) -> List[str]:
        url: Optional[str] = self.branches_url(owner, repo)
        params: Optional[Dict[str, Any]] = {"per_page": self.cfg.branches_per_page, "page": 1}
        names: List[str] = []
        pages = 0
        while url and pages < self.cfg.max_branch_pages:
            r = self._get(url, params=params, api=True)
            pages += 1
            try:
                data = r.json()
            except ValueError as e:
                raise ParseError("Branch listing is not JSON.", url=url) from e
            if not isinstance(data, list):
                raise ParseError("Branch listing has an unexpected shape.", url=url)
            for item in data:
                if isinstance(item, dict) and item.get("name"):
                    names.append(str(item["name"]))
            # The next link already carries the query string.
            url = ((getattr(r, "links", None) or {}).get("next") or {}).get("url")
            params = None
        if url:
            self.logger.warning(
                "Branch listing for %s/%s stopped after %d pages; later branches will be treated as tags",
                owner,
                repo,
                pages,
            )
        return names

    def fetch_raw(self, metadata_url: str) -> bytes:
        r = self._get(self.raw_url(metadata_url))
        return r.content

    @contextlib.contextmanager
    def open_archive(self, source: SourceLocation) -> Iterator[_ArchiveStream]:
        url = self.archive_url(source)
        r = self._get(url, stream=True)
        try:
            yield _ArchiveStream(r.raw, url=url)
        finally:
            r.close()
