"""Search profiles and lookup caches derived from stored namespace records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from scripts.namesearch.db import DocumentCollection
from scripts.namesearch.records import MalformedRecordError, search_profile

logger = logging.getLogger("namesearch.search_index")


@dataclass
class IndexBuildResult:
    profiles_written: int = 0
    names: set[str] = field(default_factory=set)
    twitter_handles: set[str] = field(default_factory=set)
    usernames: set[str] = field(default_factory=set)
    errors: list[tuple[str, str]] = field(default_factory=list)


class SearchIndexBuilder:
    """One pass over the namespace collection.

    Writes a search profile per record, then the name, twitter-handle and
    username caches in that order, then asks for an index on the name cache.
    """

    def build(
        self,
        namespace: DocumentCollection,
        search_profiles: DocumentCollection,
        name_cache: DocumentCollection,
        twitter_cache: DocumentCollection,
        username_cache: DocumentCollection,
    ) -> IndexBuildResult:
        result = IndexBuildResult()

        for record in namespace.find():
            fqu = record.get("fqu")
            try:
                if not fqu:
                    raise MalformedRecordError("Record has no fully qualified name")
                derived = search_profile(record)
            except MalformedRecordError as exc:
                result.errors.append((str(fqu), str(exc)))
                continue

            if derived.name:
                result.names.add(derived.name)
            if derived.twitter_handle:
                result.twitter_handles.add(derived.twitter_handle)
            result.usernames.add(fqu)

            search_profiles.save({
                "name": derived.name,
                "profile": record.get("profile"),
                "openbazaar": derived.openbazaar,
                "twitter_handle": derived.twitter_handle,
                "username": record.get("username"),
                "fullyQualifiedName": fqu,
            })
            result.profiles_written += 1

        if result.errors:
            logger.warning(
                "Errors on names: %s", [fqu for fqu, _ in result.errors],
                extra={"stage": "index", "errors": len(result.errors)},
            )

        name_cache.replace({"name": sorted(result.names)})
        twitter_cache.replace({"twitter_handle": sorted(result.twitter_handles)})
        username_cache.replace({"username": sorted(result.usernames)})
        name_cache.ensure_index("name")

        logger.info(
            "Built search index: %d profiles, %d names, %d handles, %d usernames",
            result.profiles_written, len(result.names),
            len(result.twitter_handles), len(result.usernames),
            extra={"stage": "index", "records": result.profiles_written},
        )
        return result
