"""Record shapes written to the document store and the helpers that derive them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from scripts.namesearch.sanitize import sanitize

NAMESPACE_SUFFIX = ".id"

OPENBAZAAR_SERVICE = "openbazaar"
TWITTER_SERVICE = "twitter"


class MalformedRecordError(ValueError):
    """A single entry or stored record has a shape we cannot index."""


@dataclass
class ResolvedEntry:
    fqu: str
    profile: dict[str, Any]

    def to_json(self) -> dict[str, Any]:
        return {"fqu": self.fqu, "profile": self.profile}


@dataclass
class SearchProfile:
    """Fields derived from one namespace record for the search collection."""

    name: Optional[str] = None
    openbazaar: Optional[str] = None
    twitter_handle: Optional[str] = None


def derive_username(fqu: str) -> str:
    """Strip the '.id' namespace suffix; any other name is returned unchanged."""
    if fqu.endswith(NAMESPACE_SUFFIX):
        return fqu[: -len(NAMESPACE_SUFFIX)]
    return fqu


def namespace_record(entry: ResolvedEntry) -> dict[str, Any]:
    """Build the {username, fqu, profile} document for one resolved entry."""
    fqu = entry.fqu
    if not isinstance(fqu, str) or not fqu:
        raise MalformedRecordError(f"Invalid fully qualified name: {fqu!r}")
    profile = entry.profile
    if profile is not None and not isinstance(profile, dict):
        raise MalformedRecordError(
            f"Profile for {fqu} is {type(profile).__name__}, expected an object"
        )
    return {
        "username": derive_username(fqu),
        "fqu": fqu,
        "profile": sanitize(profile),
    }


def profile_record(entry: ResolvedEntry) -> dict[str, Any]:
    """Raw profile document keyed by the fully qualified name."""
    return {"key": entry.fqu, "value": sanitize(entry.profile)}


# ----------------------------------------------------------------------
# Optional accessors over untrusted profile documents
# ----------------------------------------------------------------------

def _profile_of(record: dict[str, Any]) -> dict[str, Any]:
    profile = record.get("profile")
    if not isinstance(profile, dict):
        raise MalformedRecordError(
            f"Profile is {type(profile).__name__}, expected an object"
        )
    return profile


def account_handles(profile: dict[str, Any]) -> tuple[Optional[str], Optional[str]]:
    """Return (openbazaar, twitter) identifiers from profile['account'].

    A missing account list yields (None, None). When a service appears more
    than once the last entry wins.
    """
    accounts = profile.get("account")
    if accounts is None:
        return None, None
    if not isinstance(accounts, list):
        raise MalformedRecordError(
            f"account is {type(accounts).__name__}, expected a list"
        )

    openbazaar = None
    twitter = None
    for account in accounts:
        if not isinstance(account, dict):
            raise MalformedRecordError(
                f"account entry is {type(account).__name__}, expected an object"
            )
        service = account.get("service")
        if service not in (OPENBAZAAR_SERVICE, TWITTER_SERVICE):
            continue
        identifier = account.get("identifier")
        if identifier is not None and not isinstance(identifier, str):
            raise MalformedRecordError(
                f"{service} identifier is {type(identifier).__name__}, expected a string"
            )
        if service == OPENBAZAAR_SERVICE:
            openbazaar = identifier
        else:
            twitter = identifier
    return openbazaar, twitter


def display_name(profile: dict[str, Any]) -> Optional[str]:
    """Lowercased display name, preferring name.formatted when present."""
    name = profile.get("name")
    if not name:
        return None
    if isinstance(name, dict):
        name = name.get("formatted")
    if not isinstance(name, str):
        raise MalformedRecordError(f"Cannot read a display name from {name!r}")
    return name.lower()


def search_profile(record: dict[str, Any]) -> SearchProfile:
    profile = _profile_of(record)
    openbazaar, twitter = account_handles(profile)
    return SearchProfile(
        name=display_name(profile),
        openbazaar=openbazaar,
        twitter_handle=twitter,
    )
