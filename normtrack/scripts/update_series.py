"""normtrack – Update the normalized VOO/QQQ series.

Fetches the daily Stooq history for every configured instrument and
appends any new trading days to the JSON series document, normalized
against the base date's close.

Meant to be run once per day by an external scheduler (cron, CI job).
Exits 0 on success, including when nothing new was published yet, and 1
on any fetch, parse or persistence failure.

Examples
--------

    # Update data/series.json with the compiled-in defaults
    python -m normtrack.scripts.update_series

    # Use overrides from an env file and do not write anything
    python -m normtrack.scripts.update_series --env-file .env.local --dry-run
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from normtrack.core.config import load_config
from normtrack.core.errors import NormtrackError
from normtrack.core.logging import get_logger, setup_logging
from normtrack.pipeline.update import run_update
from normtrack.series.merger import MergeStatus


logger = get_logger(__name__)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Append new normalized closes to the series document")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Optional .env file with NORMTRACK_* overrides",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and merge but do not write the series document",
    )

    args = parser.parse_args(argv)

    config = load_config(env_file=args.env_file)
    setup_logging(config, force=args.env_file is not None)

    try:
        result = run_update(config, dry_run=args.dry_run)
    except NormtrackError as exc:
        logger.error("Update failed: %s", exc)
        return 1

    if result.status is MergeStatus.APPENDED:
        logger.info(
            "Update complete: appended %d rows to %s (last=%s)",
            result.rows_appended,
            result.output_path,
            result.last_date,
        )
    else:
        logger.info("Update complete: %s", result.status.value)
    return 0


if __name__ == "__main__":  # pragma: no cover - manual CLI entry
    sys.exit(main())
