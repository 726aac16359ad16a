"""End-to-end fetch of the name registry and persistence of namespace records.

A run moves through Enumerating -> Resolving -> Persisting, or through
LoadingFromFile -> Persisting when replaying a previous dump. There is no
partial resume: a live run always starts from page 0.
"""

from __future__ import annotations

import functools
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, NamedTuple, Optional

from scripts.namesearch.config import PipelineOptions
from scripts.namesearch.db import DocumentCollection
from scripts.namesearch.directory import DirectoryClient, NameKind
from scripts.namesearch.enumerator import list_names
from scripts.namesearch.records import (
    MalformedRecordError,
    ResolvedEntry,
    namespace_record,
    profile_record,
)
from scripts.namesearch.resolver import BatchedResolver

logger = logging.getLogger("namesearch.pipeline")


class DestinationNotWritableError(PermissionError):
    """A dump destination (or one of its directories) cannot be written."""


class FetchResult(NamedTuple):
    names: list[str]
    entries: list[ResolvedEntry]
    error_count: int


@dataclass(frozen=True)
class ReplayFiles:
    """Paths written by a previous dump()."""

    names_path: str
    profiles_path: str


@dataclass
class PipelineCollections:
    namespace: DocumentCollection
    profiles: Optional[DocumentCollection] = None


@dataclass
class ProcessResult:
    names: int
    resolved: int
    lookup_errors: int
    written: int
    skipped: list[tuple[str, str]] = field(default_factory=list)


def ensure_writable(path: str) -> None:
    """Fail fast unless path can be written, creating missing directories.

    Missing ancestors are created top-down after their own parent has been
    checked.
    """
    if os.path.exists(path) and not os.access(path, os.W_OK):
        raise DestinationNotWritableError(f"Cannot write to path: {path}")

    dirname = os.path.dirname(os.path.abspath(path))
    if os.path.exists(dirname):
        if not os.access(dirname, os.W_OK):
            raise DestinationNotWritableError(f"Cannot write to path: {dirname}")
    else:
        ensure_writable(dirname)
        os.mkdir(dirname)


def _write_json(path: str, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


class NamePipeline:
    """Composes enumeration and batched resolution into one fetch."""

    def __init__(self, client: DirectoryClient, options: PipelineOptions) -> None:
        self.client = client
        self.options = options

    def _resolver(self) -> BatchedResolver:
        lookup = functools.partial(
            self.client.lookup_profile, timeout=self.options.lookup_timeout
        )
        return BatchedResolver(
            lookup,
            batch_size=self.options.batch_size,
            inter_batch_delay=self.options.inter_batch_delay,
            timeout=self.options.lookup_timeout,
        )

    def fetch_all(self) -> FetchResult:
        """Enumerate both listings, then resolve every name."""
        page_cap = self.options.page_cap
        logger.info("Enumerating names", extra={"stage": "enumerating"})
        domains = list_names(self.client, NameKind.NAMES, page_cap)
        subdomains = list_names(self.client, NameKind.SUBDOMAINS, page_cap)
        names = domains + subdomains
        logger.info(
            "Fetching %d entries", len(names),
            extra={"stage": "resolving", "records": len(names)},
        )

        entries, error_count = self._resolver().resolve(names)
        logger.info(
            "Total errored lookups: %d", error_count,
            extra={"stage": "resolving", "errors": error_count},
        )
        return FetchResult(names, entries, error_count)

    def dump(self, profiles_path: str, names_path: str) -> FetchResult:
        """Fetch everything and write the resolved entries and names as JSON."""
        ensure_writable(profiles_path)
        ensure_writable(names_path)

        result = self.fetch_all()
        logger.info("Finished batching. Writing...", extra={"stage": "dumping"})
        _write_json(profiles_path, [entry.to_json() for entry in result.entries])
        _write_json(names_path, result.names)
        return result

    @staticmethod
    def load_dump(replay: ReplayFiles) -> FetchResult:
        names = _read_json(replay.names_path)
        raw_entries = _read_json(replay.profiles_path)
        if not isinstance(names, list) or not isinstance(raw_entries, list):
            raise ValueError(
                f"Dump files {replay.names_path}, {replay.profiles_path} must hold JSON lists"
            )
        entries = [
            ResolvedEntry(
                fqu=raw.get("fqu") if isinstance(raw, dict) else None,
                profile=raw.get("profile") if isinstance(raw, dict) else raw,
            )
            for raw in raw_entries
        ]
        logger.info(
            "Loaded %d names and %d profiles from dump", len(names), len(entries),
            extra={"stage": "loading"},
        )
        return FetchResult(names, entries, 0)

    def process(
        self,
        collections: PipelineCollections,
        replay: Optional[ReplayFiles] = None,
    ) -> ProcessResult:
        """Fetch (or replay) entries and write namespace records.

        Malformed entries are logged and skipped; store errors propagate.
        """
        fetched = self.load_dump(replay) if replay else self.fetch_all()

        namespace_docs: list[dict[str, Any]] = []
        profile_docs: list[dict[str, Any]] = []
        skipped: list[tuple[str, str]] = []
        for entry in fetched.entries:
            try:
                doc = namespace_record(entry)
            except MalformedRecordError as exc:
                logger.warning("Error processing %s: %s", entry.fqu, exc)
                skipped.append((str(entry.fqu), str(exc)))
                continue
            namespace_docs.append(doc)
            profile_docs.append(profile_record(entry))

        logger.info("Persisting namespace records", extra={"stage": "persisting"})
        if collections.profiles is not None:
            collections.profiles.save_many(profile_docs)
        written = collections.namespace.save_many(namespace_docs)

        logger.info(
            "Wrote %d namespace records (%d skipped)", written, len(skipped),
            extra={"stage": "done", "records": written, "errors": len(skipped)},
        )
        return ProcessResult(
            names=len(fetched.names),
            resolved=len(fetched.entries),
            lookup_errors=fetched.error_count,
            written=written,
            skipped=skipped,
        )
