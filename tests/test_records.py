from __future__ import annotations

import pytest

from scripts.namesearch.records import (
    MalformedRecordError,
    ResolvedEntry,
    account_handles,
    derive_username,
    display_name,
    namespace_record,
    profile_record,
    search_profile,
)


def test_derive_username_strips_only_id_suffix() -> None:
    assert derive_username("alice.id") == "alice"
    assert derive_username("bob.test") == "bob.test"
    assert derive_username("carol.personal.id") == "carol.personal"
    assert derive_username("idle") == "idle"


def test_namespace_record_sanitizes_profile() -> None:
    entry = ResolvedEntry(fqu="alice.id", profile={"$type": "Person", "a.b": 1})

    assert namespace_record(entry) == {
        "username": "alice",
        "fqu": "alice.id",
        "profile": {"_type": "Person", "a_b": 1},
    }


@pytest.mark.parametrize("fqu", [None, "", 42])
def test_namespace_record_rejects_bad_names(fqu: object) -> None:
    with pytest.raises(MalformedRecordError):
        namespace_record(ResolvedEntry(fqu=fqu, profile={}))  # type: ignore[arg-type]


def test_namespace_record_rejects_non_mapping_profile() -> None:
    with pytest.raises(MalformedRecordError):
        namespace_record(ResolvedEntry(fqu="x.id", profile=["not", "a", "dict"]))  # type: ignore[arg-type]


def test_profile_record_shape() -> None:
    entry = ResolvedEntry(fqu="alice.id", profile={"k.v": 1})

    assert profile_record(entry) == {"key": "alice.id", "value": {"k_v": 1}}


def test_resolved_entry_json_shape() -> None:
    entry = ResolvedEntry(fqu="a.id", profile={"x": 1})

    assert entry.to_json() == {"fqu": "a.id", "profile": {"x": 1}}


def test_account_handles_picks_known_services() -> None:
    profile = {
        "account": [
            {"service": "github", "identifier": "gh"},
            {"service": "openbazaar", "identifier": "QmStore"},
            {"service": "twitter", "identifier": "@first"},
            {"service": "twitter", "identifier": "@last"},
        ]
    }

    assert account_handles(profile) == ("QmStore", "@last")
    assert account_handles({}) == (None, None)


@pytest.mark.parametrize(
    "accounts",
    ["twitter", [None], [{"service": "twitter", "identifier": {"nested": True}}]],
)
def test_account_handles_rejects_bad_shapes(accounts: object) -> None:
    with pytest.raises(MalformedRecordError):
        account_handles({"account": accounts})


def test_display_name_prefers_formatted() -> None:
    assert display_name({"name": {"formatted": "Alice A"}}) == "alice a"
    assert display_name({"name": "Bob"}) == "bob"
    assert display_name({"name": None}) is None
    assert display_name({}) is None
    with pytest.raises(MalformedRecordError):
        display_name({"name": {"givenName": "Carol"}})


def test_search_profile_requires_mapping_profile() -> None:
    with pytest.raises(MalformedRecordError):
        search_profile({"fqu": "x.id", "profile": None})

    derived = search_profile({"fqu": "x.id", "profile": {"name": "X"}})
    assert derived.name == "x"
    assert derived.twitter_handle is None
    assert derived.openbazaar is None
