"""normtrack – Stooq CSV parsing.

Converts the raw ``Date,Open,High,Low,Close,Volume`` text returned by
:class:`~normtrack.data_ingestion.stooq_client.StooqClient` into a
``date -> close`` mapping.

Rows are dropped when the date is missing or not a calendar date, or
when the close is missing, equal to the source's "no data" sentinel, or
not a finite positive number. The returned dict is key-unique (a repeated
date keeps its last row) and carries no ordering guarantee; the merger
sorts dates itself.
"""

from __future__ import annotations

from io import StringIO

import numpy as np
import pandas as pd

from normtrack.core.errors import ParseError
from normtrack.core.logging import get_logger
from normtrack.core.types import PriceMap

logger = get_logger(__name__)

DATE_COLUMN = "Date"
CLOSE_COLUMN = "Close"


def parse_close_prices(text: str, *, null_sentinel: str = "NULL", symbol: str = "") -> PriceMap:
    """Parse Stooq CSV text into a mapping of ``YYYY-MM-DD`` → close.

    Args:
        text: Raw CSV text including the header line.
        null_sentinel: Literal the source uses for "no data" fields.
        symbol: Optional symbol used only in log messages.

    Raises:
        ParseError: If the body is not CSV at all (e.g. an HTML error
            page served with a 200 status).
    """

    if not text.strip():
        logger.warning("parse_close_prices: empty response body for %s", symbol or "<unknown>")
        return {}

    try:
        frame = pd.read_csv(
            StringIO(text),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            on_bad_lines="skip",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ParseError(f"could not read CSV for {symbol or '<unknown>'}: {exc}") from exc

    frame.columns = [str(col).strip() for col in frame.columns]
    if DATE_COLUMN not in frame.columns or CLOSE_COLUMN not in frame.columns:
        if text.lstrip().startswith("<"):
            raise ParseError(f"response for {symbol or '<unknown>'} is not CSV")
        logger.warning(
            "parse_close_prices: no %s/%s columns for %s (header=%s)",
            DATE_COLUMN,
            CLOSE_COLUMN,
            symbol or "<unknown>",
            list(frame.columns),
        )
        return {}

    if frame.empty:
        logger.warning("parse_close_prices: no data rows for %s", symbol or "<unknown>")
        return {}

    raw_dates = frame[DATE_COLUMN].fillna("").str.strip()
    raw_closes = frame[CLOSE_COLUMN].fillna("").str.strip()

    dates = pd.to_datetime(raw_dates, format="%Y-%m-%d", errors="coerce")
    closes = pd.to_numeric(raw_closes.where(raw_closes != null_sentinel), errors="coerce").astype(float)

    valid = dates.notna() & closes.notna() & np.isfinite(closes) & (closes > 0)

    # Values come from the original text so they match what the source
    # reported digit for digit.
    prices: PriceMap = {}
    for day, raw in zip(dates[valid].dt.strftime("%Y-%m-%d"), raw_closes[valid]):
        prices[day] = float(raw)

    dropped = len(frame) - int(valid.sum())
    if dropped:
        logger.debug("parse_close_prices: dropped %d unusable rows for %s", dropped, symbol or "<unknown>")
    logger.info("parse_close_prices: parsed %d closes for %s", len(prices), symbol or "<unknown>")
    return prices


__all__ = ["parse_close_prices"]
