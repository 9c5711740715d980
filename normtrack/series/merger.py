"""normtrack – Merge fetched closes into the normalized series.

Given the loaded document and one ``date -> close`` map per instrument,
the merger:

1. fills in any base close that is still unknown from the base date's
   close (a base close, once set, is never touched again);
2. stops early if some base close is still unknown, since the source has
   not published the base date yet;
3. collects the dates every instrument has a close for, on or after the
   base date, in ascending order;
4. resumes after the last stored date according to a
   :class:`~normtrack.core.config.LastDatePolicy`;
5. builds one row per remaining date with closes and normalized values.

The merger only mutates the document in memory; persisting it is the
caller's job (see :mod:`normtrack.pipeline.update`).
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from normtrack.core.config import LastDatePolicy
from normtrack.core.errors import HistoryMismatchError
from normtrack.core.logging import get_logger
from normtrack.core.types import PriceMap, PriceMaps
from normtrack.series.types import NormalizedSeriesDocument, ObservationRow

logger = get_logger(__name__)

NORMALIZED_DECIMALS = 6


class MergeStatus(str, Enum):
    """Outcome of a merge."""

    BASE_PENDING = "BASE_PENDING"
    NO_NEW_ROWS = "NO_NEW_ROWS"
    APPENDED = "APPENDED"


@dataclass
class MergeResult:
    """Summary of a merge.

    Attributes:
        status: Which of the three outcomes occurred.
        rows: Rows appended to the document, in date order.
        base_closes_filled: Instruments whose base close was set by this
            merge.
    """

    status: MergeStatus
    rows: List[ObservationRow] = field(default_factory=list)
    base_closes_filled: List[str] = field(default_factory=list)

    @property
    def rows_appended(self) -> int:
        return len(self.rows)

    @property
    def last_date(self) -> Optional[str]:
        return self.rows[-1].date if self.rows else None

    @property
    def changed(self) -> bool:
        """Whether the document differs from what was loaded."""

        return bool(self.rows or self.base_closes_filled)


def is_valid_close(value: Optional[float]) -> bool:
    """Return True for a finite, strictly positive price."""

    return value is not None and math.isfinite(value) and value > 0


def normalize(close: float, base_close: float) -> float:
    """Return ``close / base_close`` rounded to six decimal places."""

    return round(close / base_close, NORMALIZED_DECIMALS)


def resolve_base_closes(doc: NormalizedSeriesDocument, price_maps: PriceMaps) -> List[str]:
    """Fill unknown base closes from the base date's close.

    Returns the names of the instruments whose base close was set.
    """

    filled: List[str] = []
    for name, base_close in doc.base_closes.items():
        if base_close is not None:
            continue
        close = price_maps.get(name, {}).get(doc.base_date)
        if is_valid_close(close):
            doc.base_closes[name] = close
            filled.append(name)
            logger.info("Base close for %s on %s set to %s", name, doc.base_date, close)
    return filled


def candidate_dates(base_date: str, price_maps: Sequence[PriceMap]) -> List[str]:
    """Return dates present in every map and not before ``base_date``, ascending."""

    if not price_maps:
        return []
    common = set(price_maps[0])
    for prices in price_maps[1:]:
        common &= set(prices)
    return sorted(day for day in common if day >= base_date)


def start_index(
    candidates: Sequence[str],
    last_date: Optional[str],
    policy: LastDatePolicy = LastDatePolicy.RESUME,
) -> int:
    """Index of the first candidate to append after ``last_date``.

    Under ``RESUME`` this is the first candidate strictly after
    ``last_date`` whether or not ``last_date`` itself is still present.
    Under ``STRICT`` a ``last_date`` missing from ``candidates`` raises
    :class:`HistoryMismatchError`.
    """

    if last_date is None:
        return 0

    index = bisect.bisect_right(candidates, last_date)
    present = index > 0 and candidates[index - 1] == last_date
    if not present:
        if policy is LastDatePolicy.STRICT:
            raise HistoryMismatchError(last_date)
        logger.warning(
            "Last stored date %s not found in fetched history; resuming after it",
            last_date,
        )
    return index


def build_rows(
    doc: NormalizedSeriesDocument,
    price_maps: PriceMaps,
    dates: Sequence[str],
) -> List[ObservationRow]:
    """Build rows for ``dates``, skipping any date with an unusable close."""

    names = list(doc.base_closes)
    rows: List[ObservationRow] = []
    for day in dates:
        closes = {name: price_maps.get(name, {}).get(day) for name in names}
        if not all(is_valid_close(close) for close in closes.values()):
            logger.debug("Skipping %s: missing close (%s)", day, closes)
            continue
        rows.append(
            ObservationRow(
                date=day,
                closes=dict(closes),
                normalized={
                    name: normalize(closes[name], doc.base_closes[name])  # type: ignore[arg-type]
                    for name in names
                },
            )
        )
    return rows


def merge_observations(
    doc: NormalizedSeriesDocument,
    price_maps: PriceMaps,
    *,
    policy: LastDatePolicy = LastDatePolicy.RESUME,
) -> MergeResult:
    """Merge freshly parsed closes into ``doc`` in place.

    Args:
        doc: Loaded series document; mutated in place.
        price_maps: Instrument name -> ``date -> close`` map.
        policy: How to resume when the last stored date is missing from
            the fetched history.

    Raises:
        HistoryMismatchError: Only under ``LastDatePolicy.STRICT``.
    """

    filled = resolve_base_closes(doc, price_maps)

    missing = doc.missing_base_closes()
    if missing:
        logger.warning(
            "Base close missing for %s on %s; will wait until available",
            ", ".join(missing),
            doc.base_date,
        )
        return MergeResult(status=MergeStatus.BASE_PENDING, base_closes_filled=filled)

    names = list(doc.base_closes)
    candidates = candidate_dates(doc.base_date, [price_maps.get(name, {}) for name in names])
    start = start_index(candidates, doc.last_date, policy)
    rows = build_rows(doc, price_maps, candidates[start:])

    if not rows:
        logger.info("No new rows to append (last=%s)", doc.last_date)
        return MergeResult(status=MergeStatus.NO_NEW_ROWS, base_closes_filled=filled)

    doc.series.extend(rows)
    logger.info("Appended %d rows. Last: %s", len(rows), rows[-1].date)
    return MergeResult(status=MergeStatus.APPENDED, rows=rows, base_closes_filled=filled)


__all__ = [
    "MergeStatus",
    "MergeResult",
    "is_valid_close",
    "normalize",
    "resolve_base_closes",
    "candidate_dates",
    "start_index",
    "build_rows",
    "merge_observations",
]
