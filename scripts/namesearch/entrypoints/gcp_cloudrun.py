"""GCP Cloud Run Job entry point for the indexer.

Deployed as a Cloud Run Job triggered by Cloud Scheduler.
The INDEXER_COMMAND env var selects the stage to run.

Usage:
  INDEXER_COMMAND=rebuild python -m scripts.namesearch.entrypoints.gcp_cloudrun
  INDEXER_COMMAND=process python -m scripts.namesearch.entrypoints.gcp_cloudrun
  INDEXER_COMMAND=index python -m scripts.namesearch.entrypoints.gcp_cloudrun
"""

from __future__ import annotations

import logging
import os
import sys

from scripts.namesearch.config import load_config
from scripts.namesearch.db import Database
from scripts.namesearch.logging_config import configure_logging
from scripts.namesearch.runner import STAGES, IndexerRun

logger = logging.getLogger("namesearch.cloudrun")


def main() -> None:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))

    stage = os.environ.get("INDEXER_COMMAND", "rebuild")
    if stage not in STAGES:
        logger.error("INDEXER_COMMAND must be one of %s, got %r", STAGES, stage)
        sys.exit(1)

    logger.info("Cloud Run Job started for stage=%s", stage)

    config = load_config()
    db = Database(config.database)
    run = IndexerRun(config, db)

    try:
        results = run.run(stage)
        logger.info("Run complete for %s: %s", stage, results)
    except Exception as exc:
        logger.error("Run failed for %s: %s", stage, exc, exc_info=True)
        sys.exit(1)
    finally:
        run.client.close()
        db.close()


if __name__ == "__main__":
    main()
