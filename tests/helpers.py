from __future__ import annotations

import copy
from typing import Any, Iterable, Iterator, Optional

from scripts.namesearch.directory import NameKind


class FakeCollection:
    """In-memory stand-in for PostgresCollection."""

    def __init__(self, key_field: Optional[str] = None, docs: Iterable[dict[str, Any]] = ()) -> None:
        self.key_field = key_field
        self.docs: dict[str, dict[str, Any]] = {}
        self.saved: list[dict[str, Any]] = []
        self.replaced: list[dict[str, Any]] = []
        self.indexes: list[str] = []
        self.events: Optional[list[str]] = None
        self.name = ""
        for doc in docs:
            self.docs[self._key(doc)] = copy.deepcopy(doc)

    def _key(self, doc: dict[str, Any]) -> str:
        if self.key_field is None:
            return "singleton"
        return str(doc[self.key_field])

    def _event(self, what: str) -> None:
        if self.events is not None:
            self.events.append(f"{what}:{self.name}")

    def find(self) -> Iterator[dict[str, Any]]:
        for doc in list(self.docs.values()):
            yield copy.deepcopy(doc)

    def save(self, doc: dict[str, Any]) -> None:
        self.save_many([doc])

    def save_many(self, docs: Iterable[dict[str, Any]]) -> int:
        count = 0
        for doc in docs:
            self.docs[self._key(doc)] = copy.deepcopy(doc)
            self.saved.append(doc)
            count += 1
        return count

    def replace(self, doc: dict[str, Any]) -> None:
        self._event("replace")
        self.docs = {self._key(doc): copy.deepcopy(doc)}
        self.replaced.append(doc)

    def ensure_index(self, field: str) -> None:
        self._event("index")
        self.indexes.append(field)

    @property
    def only(self) -> dict[str, Any]:
        (doc,) = self.docs.values()
        return doc


class FakeDirectory:
    """Serves fixed listing pages and profiles; records every call."""

    def __init__(
        self,
        names: Optional[list[list[str]]] = None,
        subdomains: Optional[list[list[str]]] = None,
        profiles: Optional[dict[str, Any]] = None,
    ) -> None:
        self.pages = {
            NameKind.NAMES: names or [],
            NameKind.SUBDOMAINS: subdomains or [],
        }
        self.profiles = profiles or {}
        self.page_calls: list[tuple[NameKind, int]] = []
        self.lookups: list[str] = []

    def get_page(self, kind: NameKind, page: int) -> list[str]:
        self.page_calls.append((kind, page))
        pages = self.pages[kind]
        return list(pages[page]) if page < len(pages) else []

    def lookup_profile(self, name: str, timeout: Optional[float] = None) -> dict[str, Any]:
        self.lookups.append(name)
        profile = self.profiles.get(name)
        if profile is None:
            raise LookupError(f"no profile for {name}")
        return copy.deepcopy(profile)

    def close(self) -> None:
        pass


class FakeResponse:
    def __init__(self, body: Any, status_code: int = 200) -> None:
        self._body = body
        self.status_code = status_code

    def json(self) -> Any:
        return self._body

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            import requests

            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    def __init__(self, responses: dict[str, FakeResponse]) -> None:
        self.headers: dict[str, str] = {}
        self.responses = responses
        self.calls: list[tuple[str, Optional[dict], Optional[float]]] = []

    def get(self, url: str, params: Optional[dict] = None, timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append((url, params, timeout))
        return self.responses[url]

    def close(self) -> None:
        pass
