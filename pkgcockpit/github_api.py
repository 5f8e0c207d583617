#===============================================================================
#  Package Cockpit | github_api.py
#===============================================================================
#  Author      : Edwin A. Rodriguez
#  Role/Team   : SAP COE / SAP SRE (GRM-Testing-Automation & Governance)
#  Created     : 2026-02-10
#  Last Update : 2026-10-17
#
#  Summary
#  -------
#  GitHub public-repo metadata (releases, branches, commits) used for version
#  resolution. Responses are cached in memory for a short TTL so repeated
#  update checks do not hammer the API.
#
#  Copyright (c) 2026 Edwin A. Rodriguez. All rights reserved.
#  Provided "AS IS", without warranty of any kind.
#===============================================================================

from __future__ import annotations

import logging
import re
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .constants import GITHUB_API_ROOT, GITHUB_CACHE_TTL, HTTP_TIMEOUT
from .exceptions import GithubApiError

# NOTE:
# - We intentionally keep this module focused on GitHub I/O.
# - Progress and notices live in the orchestrator layer.

logger = logging.getLogger(__name__)


def parse_github_repo_url(url: str) -> Optional[Tuple[str, str]]:
    """Parse GitHub repo URLs and return (owner, repo) or None."""
    url = url.strip()
    if not url or url.startswith("#"):
        return None
    m = re.match(r"^https?://github\.com/([^/]+)/([^/]+?)(?:\.git)?/?$", url)
    if not m:
        return None
    owner, repo = m.group(1), m.group(2)
    return owner, repo


def same_repository(url_a: str, url_b: str) -> bool:
    """True if both URLs point to the same GitHub owner/repo (case-insensitive)."""
    a = parse_github_repo_url(url_a)
    b = parse_github_repo_url(url_b)
    if a is None or b is None:
        return url_a.strip().rstrip("/").lower() == url_b.strip().rstrip("/").lower()
    return (a[0].lower(), a[1].lower()) == (b[0].lower(), b[1].lower())


class GithubApi:
    """Thin cached client over the GitHub REST API."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        ttl: timedelta = GITHUB_CACHE_TTL,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.session = session or requests.Session()
        self.session.headers.setdefault("Accept", "application/vnd.github+json")
        self.ttl = ttl
        self._clock = clock
        self._cache: Dict[str, Tuple[datetime, Any]] = {}
        self._lock = threading.Lock()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        key = path + "?" + "&".join(f"{k}={v}" for k, v in sorted((params or {}).items()))
        now = self._clock()
        with self._lock:
            hit = self._cache.get(key)
            if hit and hit[0] > now:
                return hit[1]

        url = f"{GITHUB_API_ROOT}/{path}"
        logger.debug(f"GET {url} {params or ''}")
        try:
            r = self.session.get(url, params=params, timeout=HTTP_TIMEOUT)
        except requests.RequestException as e:
            raise GithubApiError(f"GET {url} failed: {e}") from e
        if r.status_code != 200:
            raise GithubApiError(f"GET {url} returned HTTP {r.status_code}")

        data = r.json()
        with self._lock:
            self._cache[key] = (now + self.ttl, data)
        return data

    def get_releases(self, owner: str, repo: str) -> List[Dict[str, Any]]:
        return list(self._get(f"repos/{owner}/{repo}/releases", {"per_page": 30}))

    def get_latest_release(
        self, owner: str, repo: str, include_prerelease: bool = False
    ) -> Optional[Dict[str, Any]]:
        for release in self.get_releases(owner, repo):
            if release.get("draft"):
                continue
            if release.get("prerelease") and not include_prerelease:
                continue
            return release
        return None

    def get_branches(self, owner: str, repo: str) -> List[str]:
        return [b["name"] for b in self._get(f"repos/{owner}/{repo}/branches", {"per_page": 100})]

    def get_commits(self, owner: str, repo: str, branch: str, per_page: int = 10) -> List[Dict[str, Any]]:
        return list(self._get(f"repos/{owner}/{repo}/commits", {"sha": branch, "per_page": per_page}))
