"""CLI entry point: dump, process, index, rebuild, scheduler, status, init-db."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional, Sequence

from scripts.namesearch.config import PipelineOptions, load_config, load_fetch_config
from scripts.namesearch.db import Database
from scripts.namesearch.directory import DirectoryClient
from scripts.namesearch.logging_config import configure_logging
from scripts.namesearch.pipeline import NamePipeline, ReplayFiles
from scripts.namesearch.runner import STAGES, IndexerCollections, IndexerRun

logger = logging.getLogger("namesearch.cli")


def _options(base: PipelineOptions, args: argparse.Namespace) -> PipelineOptions:
    """Environment options with any CLI overrides applied."""
    return base.override(
        page_cap=getattr(args, "page_cap", None),
        batch_size=getattr(args, "batch_size", None),
        inter_batch_delay=getattr(args, "batch_delay", None),
    )


def _replay(args: argparse.Namespace) -> Optional[ReplayFiles]:
    use_files = getattr(args, "use_files", None)
    if not use_files:
        return None
    names_path, profiles_path = use_files
    return ReplayFiles(names_path=names_path, profiles_path=profiles_path)


def cmd_dump(args: argparse.Namespace) -> None:
    """Fetch the whole registry into two JSON files; no database needed."""
    directory, options = load_fetch_config()
    client = DirectoryClient(directory)
    try:
        result = NamePipeline(client, _options(options, args)).dump(
            args.profiles_file, args.names_file
        )
        logger.info(
            "Dumped %d names and %d profiles (%d errored lookups)",
            len(result.names), len(result.entries), result.error_count,
        )
    finally:
        client.close()


def cmd_stage(args: argparse.Namespace) -> None:
    """Run process, index or rebuild against the database."""
    config = load_config()
    db = Database(config.database)
    run = IndexerRun(config, db, options=_options(config.pipeline, args))
    try:
        results = run.run(args.command, replay=_replay(args))
        logger.info("%s results: %s", args.command, results)
    finally:
        run.client.close()
        db.close()


def cmd_init_db(args: argparse.Namespace) -> None:
    """Create the run-tracking table and every collection table."""
    config = load_config()
    db = Database(config.database)
    try:
        db.ensure_runs_table()
        IndexerCollections(config, db).create_all()
        logger.info("Database initialised")
    finally:
        db.close()


def cmd_scheduler(args: argparse.Namespace) -> None:
    """Start the APScheduler-based rebuild loop."""
    from scripts.namesearch.scheduler import start_scheduler

    config = load_config()
    db = Database(config.database)
    try:
        start_scheduler(config, db)
    finally:
        db.close()


def cmd_status(args: argparse.Namespace) -> None:
    """Show recent indexer runs."""
    config = load_config()
    db = Database(config.database)

    try:
        runs = db.get_recent_runs(
            stage=args.stage if args.stage != "all" else None,
            limit=args.limit,
        )
        if not runs:
            print("No indexer runs found.")
            return

        fmt = "{:<36}  {:<8}  {:<8}  {:<20}  {:<20}  {:>8}  {:>7}  {}"
        print(fmt.format(
            "RUN ID", "STAGE", "STATUS", "STARTED", "FINISHED",
            "WRITTEN", "ERRORED", "ERROR",
        ))
        print("-" * 140)
        for r in runs:
            started = str(r["started_at"])[:19] if r["started_at"] else ""
            finished = str(r["finished_at"])[:19] if r["finished_at"] else ""
            error = (r.get("error_message") or "")[:40]
            print(fmt.format(
                str(r["id"])[:36],
                r["stage"],
                r["status"],
                started,
                finished,
                r.get("records_written", 0),
                r.get("records_errored", 0),
                error,
            ))
    finally:
        db.close()


def _add_pipeline_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--page-cap",
        type=int,
        default=None,
        help="Stop enumerating after this many pages per listing (default: all)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Concurrent profile lookups per batch (env INDEXER_BATCH_SIZE)",
    )
    parser.add_argument(
        "--batch-delay",
        type=float,
        default=None,
        help="Seconds to wait between batches (env INDEXER_BATCH_DELAY)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="namesearch",
        description="Name registry ingestion and search index builder",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    dump_parser = subparsers.add_parser("dump", help="Fetch names and profiles into JSON files")
    dump_parser.add_argument("profiles_file", help="Destination for resolved profiles")
    dump_parser.add_argument("names_file", help="Destination for the flat name list")
    _add_pipeline_flags(dump_parser)
    dump_parser.set_defaults(func=cmd_dump)

    for stage in ("process", "rebuild"):
        stage_parser = subparsers.add_parser(
            stage,
            help="Write namespace records" if stage == "process"
            else "Write namespace records, then build the search index",
        )
        stage_parser.add_argument(
            "--use-files",
            nargs=2,
            metavar=("NAMES_FILE", "PROFILES_FILE"),
            help="Replay a previous dump instead of fetching",
        )
        _add_pipeline_flags(stage_parser)
        stage_parser.set_defaults(func=cmd_stage)

    index_parser = subparsers.add_parser("index", help="Build search profiles and caches")
    index_parser.set_defaults(func=cmd_stage)

    init_parser = subparsers.add_parser("init-db", help="Create tables")
    init_parser.set_defaults(func=cmd_init_db)

    sched_parser = subparsers.add_parser("scheduler", help="Start scheduled rebuild loop")
    sched_parser.set_defaults(func=cmd_scheduler)

    status_parser = subparsers.add_parser("status", help="Show recent indexer runs")
    status_parser.add_argument(
        "--stage", "-s",
        choices=["all", *STAGES],
        default="all",
        help="Filter by stage",
    )
    status_parser.add_argument(
        "--limit", "-l",
        type=int,
        default=10,
        help="Number of runs to show (default: 10)",
    )
    status_parser.set_defaults(func=cmd_status)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main CLI entry point."""
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    args = build_parser().parse_args(argv)
    try:
        args.func(args)
    except Exception as exc:
        logger.error("%s failed: %s", args.command, exc, exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
