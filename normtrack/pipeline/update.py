"""normtrack – One update run of the normalized series.

A run fetches every instrument concurrently, parses each response,
loads the stored document, merges, and saves. Any fetch or parse failure
aborts the run before the store is touched, so a failed run never
persists a partial result.

Designed to be invoked once per period by an external scheduler; a
repeated run within the same period appends nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from normtrack.core.config import TrackerConfig
from normtrack.core.logging import get_logger
from normtrack.core.types import PriceMap
from normtrack.data_ingestion.csv_parser import parse_close_prices
from normtrack.data_ingestion.stooq_client import StooqClient
from normtrack.series.merger import MergeStatus, merge_observations
from normtrack.series.storage import SeriesStore

logger = get_logger(__name__)


@dataclass
class UpdateResult:
    """Summary of an update run."""

    status: MergeStatus
    rows_appended: int
    last_date: Optional[str]
    output_path: Path
    saved: bool


def fetch_price_maps(config: TrackerConfig, client: StooqClient) -> Dict[str, PriceMap]:
    """Fetch and parse every configured instrument.

    Returns instrument name -> ``date -> close``.
    """

    texts = client.fetch_many(config.instruments.values())
    return {
        name: parse_close_prices(texts[symbol], null_sentinel=config.null_sentinel, symbol=symbol)
        for name, symbol in config.instruments.items()
    }


def run_update(
    config: TrackerConfig,
    *,
    client: Optional[StooqClient] = None,
    store: Optional[SeriesStore] = None,
    dry_run: bool = False,
) -> UpdateResult:
    """Run one fetch → parse → merge → persist cycle.

    Args:
        config: Tracker configuration.
        client: Optional client; one is built from ``config`` (and closed
            afterwards) when omitted.
        store: Optional store; one is built from ``config`` when omitted.
        dry_run: Merge as usual but never write the document.

    Raises:
        NormtrackError: Any fetch, parse, state or persist failure.
    """

    owns_client = client is None
    if client is None:
        client = StooqClient(
            url_template=config.source_url,
            user_agent=config.user_agent,
            timeout_seconds=config.request_timeout,
        )
    if store is None:
        store = SeriesStore(config.output_path, config.base_date, config.instruments.keys())

    logger.info(
        "run_update: instruments=%s base_date=%s output=%s",
        dict(config.instruments),
        config.base_date,
        store.path,
    )

    try:
        price_maps = fetch_price_maps(config, client)
    finally:
        if owns_client:
            client.close()

    doc = store.load()
    result = merge_observations(doc, price_maps, policy=config.last_date_policy)

    # BASE_PENDING saves so that a base close filled for one instrument is
    # kept; NO_NEW_ROWS leaves the file alone unless a base close was set.
    should_save = result.status is not MergeStatus.NO_NEW_ROWS or result.changed
    saved = False
    if should_save and dry_run:
        logger.info("run_update: dry run; not writing %s", store.path)
    elif should_save:
        store.save(doc)
        saved = True

    return UpdateResult(
        status=result.status,
        rows_appended=result.rows_appended,
        last_date=result.last_date,
        output_path=store.path,
        saved=saved,
    )


__all__ = ["UpdateResult", "fetch_price_maps", "run_update"]
