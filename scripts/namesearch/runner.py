"""Runs pipeline stages against the database with indexer_runs tracking."""

from __future__ import annotations

import logging
import time
import traceback
from typing import Callable, Optional

from scripts.namesearch.config import IndexerConfig, PipelineOptions
from scripts.namesearch.db import Database, PostgresCollection
from scripts.namesearch.directory import DirectoryClient
from scripts.namesearch.pipeline import NamePipeline, PipelineCollections, ReplayFiles
from scripts.namesearch.search_index import SearchIndexBuilder

logger = logging.getLogger("namesearch.runner")

STAGES = ("process", "index", "rebuild")


class IndexerCollections:
    """Every collection a run touches, bound to the configured table names."""

    def __init__(self, config: IndexerConfig, db: Database) -> None:
        names = config.collections
        self.namespace = db.collection(names.namespace, key_field="username")
        self.profiles = db.collection(names.profiles, key_field="key")
        self.search_profiles = db.collection(names.search_profiles, key_field="fullyQualifiedName")
        self.name_cache = db.collection(names.name_cache)
        self.twitter_cache = db.collection(names.twitter_cache)
        self.username_cache = db.collection(names.username_cache)

    def all(self) -> list[PostgresCollection]:
        return [
            self.namespace,
            self.profiles,
            self.search_profiles,
            self.name_cache,
            self.twitter_cache,
            self.username_cache,
        ]

    def create_all(self) -> None:
        for collection in self.all():
            collection.create()


class IndexerRun:
    def __init__(
        self,
        config: IndexerConfig,
        db: Database,
        options: Optional[PipelineOptions] = None,
        client: Optional[DirectoryClient] = None,
    ) -> None:
        self.config = config
        self.db = db
        self.options = options or config.pipeline
        self.client = client or DirectoryClient(config.directory)
        self.collections = IndexerCollections(config, db)

    def process(self, replay: Optional[ReplayFiles] = None) -> dict[str, int]:
        pipeline = NamePipeline(self.client, self.options)
        result = pipeline.process(
            PipelineCollections(
                namespace=self.collections.namespace,
                profiles=self.collections.profiles,
            ),
            replay=replay,
        )
        return {
            "written": result.written,
            "errored": result.lookup_errors + len(result.skipped),
        }

    def index(self) -> dict[str, int]:
        c = self.collections
        result = SearchIndexBuilder().build(
            c.namespace, c.search_profiles, c.name_cache, c.twitter_cache, c.username_cache
        )
        return {"written": result.profiles_written, "errored": len(result.errors)}

    def rebuild(self, replay: Optional[ReplayFiles] = None) -> dict[str, int]:
        processed = self.process(replay)
        indexed = self.index()
        return {
            "written": processed["written"] + indexed["written"],
            "errored": processed["errored"] + indexed["errored"],
        }

    def run(self, stage: str, replay: Optional[ReplayFiles] = None) -> dict[str, int]:
        """Run one stage wrapped in an indexer_runs row; failures are re-raised."""
        stages: dict[str, Callable[[], dict[str, int]]] = {
            "process": lambda: self.process(replay),
            "index": self.index,
            "rebuild": lambda: self.rebuild(replay),
        }
        if stage not in stages:
            raise ValueError(f"Unknown stage {stage!r}, expected one of {STAGES}")

        run_id = self.db.record_run_start(
            stage=stage,
            metadata={
                "page_cap": self.options.page_cap,
                "batch_size": self.options.batch_size,
                "inter_batch_delay": self.options.inter_batch_delay,
                "replay": bool(replay),
            },
        )
        started = time.monotonic()
        try:
            counts = stages[stage]()
            self.db.record_run_end(
                run_id=run_id,
                status="SUCCESS",
                records_written=counts["written"],
                records_errored=counts["errored"],
            )
            logger.info(
                "Run complete",
                extra={
                    "stage": stage,
                    "records": counts["written"],
                    "errors": counts["errored"],
                    "duration_s": round(time.monotonic() - started, 2),
                    "run_id": run_id,
                },
            )
            return counts
        except Exception as exc:
            self.db.record_run_end(
                run_id=run_id,
                status="FAILED",
                error_message=str(exc)[:1000],
                error_detail={"traceback": traceback.format_exc()},
            )
            logger.error(
                "Run failed: %s", exc,
                extra={"stage": stage, "run_id": run_id},
            )
            raise
