"""Configuration via environment variables with cloud-native secret support.

Supports:
  - Environment variables (local dev)
  - .env files loaded through python-dotenv
  - AWS Secrets Manager / GCP Secret Manager references for the database URL
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from dotenv import load_dotenv

from scripts.namesearch.secrets import resolve_database_url

DEFAULT_DIRECTORY_URL = "https://core.blockstack.org"
DEFAULT_BATCH_SIZE = 5
DEFAULT_LOOKUP_TIMEOUT = 30.0


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    min_connections: int = 2
    max_connections: int = 10


@dataclass(frozen=True)
class DirectoryConfig:
    api_base_url: str = DEFAULT_DIRECTORY_URL


@dataclass(frozen=True)
class PipelineOptions:
    """Knobs for one enumerate + resolve run.

    page_cap=None fetches every page; batch_size is the number of lookups in
    flight; inter_batch_delay is in seconds.
    """

    page_cap: Optional[int] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    inter_batch_delay: float = 0.0
    lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT

    def __post_init__(self) -> None:
        if self.page_cap is not None and self.page_cap < 0:
            raise ValueError(f"page_cap must be >= 0, got {self.page_cap}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.inter_batch_delay < 0:
            raise ValueError(f"inter_batch_delay must be >= 0, got {self.inter_batch_delay}")
        if self.lookup_timeout <= 0:
            raise ValueError(f"lookup_timeout must be > 0, got {self.lookup_timeout}")

    def override(
        self,
        page_cap: Optional[int] = None,
        batch_size: Optional[int] = None,
        inter_batch_delay: Optional[float] = None,
    ) -> "PipelineOptions":
        """Return a copy with any non-None argument applied."""
        changes: dict[str, object] = {}
        if page_cap is not None:
            changes["page_cap"] = page_cap
        if batch_size is not None:
            changes["batch_size"] = batch_size
        if inter_batch_delay is not None:
            changes["inter_batch_delay"] = inter_batch_delay
        return replace(self, **changes)


@dataclass(frozen=True)
class CollectionNames:
    namespace: str = "namespace"
    profiles: str = "profile_data"
    search_profiles: str = "profiles"
    name_cache: str = "people_cache"
    twitter_cache: str = "twitter_cache"
    username_cache: str = "username_cache"

    def prefixed(self, prefix: str) -> "CollectionNames":
        return CollectionNames(
            namespace=prefix + self.namespace,
            profiles=prefix + self.profiles,
            search_profiles=prefix + self.search_profiles,
            name_cache=prefix + self.name_cache,
            twitter_cache=prefix + self.twitter_cache,
            username_cache=prefix + self.username_cache,
        )


@dataclass(frozen=True)
class SchedulerConfig:
    rebuild_interval_hours: int = 24
    misfire_grace_time: int = 300
    max_retries: int = 3


@dataclass(frozen=True)
class IndexerConfig:
    database: DatabaseConfig
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    pipeline: PipelineOptions = field(default_factory=PipelineOptions)
    collections: CollectionNames = field(default_factory=CollectionNames)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)


def _optional_int(name: str) -> Optional[int]:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    return int(raw)


def _directory_from_env() -> DirectoryConfig:
    return DirectoryConfig(
        api_base_url=os.environ.get("DIRECTORY_API_URL", DEFAULT_DIRECTORY_URL),
    )


def _pipeline_from_env() -> PipelineOptions:
    return PipelineOptions(
        page_cap=_optional_int("INDEXER_PAGE_CAP"),
        batch_size=int(os.environ.get("INDEXER_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
        inter_batch_delay=float(os.environ.get("INDEXER_BATCH_DELAY", "0")),
        lookup_timeout=float(
            os.environ.get("INDEXER_LOOKUP_TIMEOUT", str(DEFAULT_LOOKUP_TIMEOUT))
        ),
    )


def load_fetch_config() -> tuple[DirectoryConfig, PipelineOptions]:
    """Directory and pipeline settings only; never touches database secrets."""
    load_dotenv()
    return _directory_from_env(), _pipeline_from_env()


def load_config() -> IndexerConfig:
    """Load configuration from environment variables.

    Every pipeline knob is independently optional; unset values fall back to
    "fetch everything, batch size 5, no delay".
    """
    load_dotenv()

    database = DatabaseConfig(
        url=resolve_database_url(),
        min_connections=int(os.environ.get("DB_MIN_CONNECTIONS", "2")),
        max_connections=int(os.environ.get("DB_MAX_CONNECTIONS", "10")),
    )

    directory = _directory_from_env()
    pipeline = _pipeline_from_env()

    collections = CollectionNames().prefixed(
        os.environ.get("INDEXER_COLLECTION_PREFIX", "search_")
    )

    scheduler = SchedulerConfig(
        rebuild_interval_hours=int(os.environ.get("INDEXER_REBUILD_INTERVAL_HOURS", "24")),
        max_retries=int(os.environ.get("INDEXER_MAX_RETRIES", "3")),
    )

    return IndexerConfig(
        database=database,
        directory=directory,
        pipeline=pipeline,
        collections=collections,
        scheduler=scheduler,
    )
