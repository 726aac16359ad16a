from __future__ import annotations

import pytest
import requests

from scripts.namesearch.config import DirectoryConfig
from scripts.namesearch.directory import DirectoryClient, NameKind, ProfileNotFoundError
from tests.helpers import FakeResponse, FakeSession

BASE = "https://directory.example.org"


def _client(responses: dict[str, FakeResponse]) -> tuple[DirectoryClient, FakeSession]:
    session = FakeSession(responses)
    return DirectoryClient(DirectoryConfig(api_base_url=BASE + "/"), session=session), session


def test_get_page_hits_listing_endpoint() -> None:
    client, session = _client({f"{BASE}/v1/subdomains": FakeResponse(["a.b.id"])})

    assert client.get_page(NameKind.SUBDOMAINS, 3) == ["a.b.id"]
    assert session.calls == [(f"{BASE}/v1/subdomains", {"page": 3}, None)]


def test_get_page_raises_on_http_error() -> None:
    client, _ = _client({f"{BASE}/v1/names": FakeResponse({"error": "x"}, status_code=502)})

    with pytest.raises(requests.HTTPError):
        client.get_page(NameKind.NAMES, 0)


def test_get_page_rejects_non_list_body() -> None:
    client, _ = _client({f"{BASE}/v1/names": FakeResponse({"names": []})})

    with pytest.raises(ValueError):
        client.get_page(NameKind.NAMES, 0)


def test_lookup_profile_unwraps_entry() -> None:
    body = {"alice.id": {"profile": {"name": "Alice"}, "zone_file": "..."}}
    client, session = _client({f"{BASE}/v1/users/alice.id": FakeResponse(body)})

    assert client.lookup_profile("alice.id", timeout=30) == {"name": "Alice"}
    assert session.calls[0][2] == 30


@pytest.mark.parametrize("body", [{}, {"alice.id": {}}, {"alice.id": {"profile": None}}, []])
def test_lookup_profile_without_profile(body: object) -> None:
    client, _ = _client({f"{BASE}/v1/users/alice.id": FakeResponse(body)})

    with pytest.raises(ProfileNotFoundError):
        client.lookup_profile("alice.id")
