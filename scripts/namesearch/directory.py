"""HTTP client for the name directory: name listings and profile lookups."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional
from urllib.parse import quote

import requests

from scripts.namesearch.config import DirectoryConfig

logger = logging.getLogger("namesearch.directory")


class NameKind(str, Enum):
    """Which paginated listing to walk."""

    NAMES = "names"
    SUBDOMAINS = "subdomains"


class ProfileNotFoundError(LookupError):
    """The directory answered but carried no profile for the name."""


class DirectoryClient:
    """Thin wrapper around a requests.Session bound to one directory API."""

    def __init__(
        self,
        config: DirectoryConfig,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base = config.api_base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.setdefault("Accept", "application/json")

    def close(self) -> None:
        self._session.close()

    def get_page(self, kind: NameKind, page: int) -> list[str]:
        """Fetch one listing page. An empty list marks the end of the listing."""
        resp = self._session.get(
            f"{self._base}/v1/{kind.value}", params={"page": page}
        )
        resp.raise_for_status()
        names = resp.json()
        if not isinstance(names, list):
            raise ValueError(
                f"Expected a list from /v1/{kind.value}?page={page}, "
                f"got {type(names).__name__}"
            )
        logger.debug("Fetched %s page %d (%d names)", kind.value, page, len(names))
        return names

    def lookup_profile(self, name: str, timeout: Optional[float] = None) -> dict[str, Any]:
        """Resolve a single name to its profile document."""
        resp = self._session.get(
            f"{self._base}/v1/users/{quote(name, safe='')}", timeout=timeout
        )
        resp.raise_for_status()
        body = resp.json()
        entry = body.get(name) if isinstance(body, dict) else None
        if not isinstance(entry, dict):
            raise ProfileNotFoundError(f"No entry for {name}")
        profile = entry.get("profile")
        if not isinstance(profile, dict):
            raise ProfileNotFoundError(f"No profile for {name}")
        return profile
