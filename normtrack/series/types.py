"""normtrack – Normalized series document types.

The persisted document is keyed by instrument name. In JSON each
instrument contributes flat, name-prefixed keys, e.g. for ``voo``::

    {"baseDate": "2025-10-15", "vooBaseClose": 588.1, ...,
     "series": [{"date": "2025-10-15", "vooClose": 588.1, "vooN": 1.0, ...}]}

Conversion to and from that shape lives here so the store only deals
with files.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from normtrack.core.types import JsonDict


def base_close_key(name: str) -> str:
    return f"{name}BaseClose"


def close_key(name: str) -> str:
    return f"{name}Close"


def normalized_key(name: str) -> str:
    return f"{name}N"


def _positive_number(value: object, what: str) -> float:
    """Return ``value`` as a float, rejecting booleans, NaN, infinities and values <= 0."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"{what} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number) or number <= 0:
        raise ValueError(f"{what} must be a finite positive number, got {value!r}")
    return number


@dataclass
class ObservationRow:
    """One trading day present for every tracked instrument.

    Attributes:
        date: Trading date as ``YYYY-MM-DD``.
        closes: Instrument name -> close as reported by the source.
        normalized: Instrument name -> ``close / base close`` rounded to
            six decimal places.
    """

    date: str
    closes: Dict[str, float]
    normalized: Dict[str, float]

    def to_json(self, instruments: Iterable[str]) -> JsonDict:
        names = list(instruments)
        payload: JsonDict = {"date": self.date}
        for name in names:
            payload[close_key(name)] = self.closes[name]
        for name in names:
            payload[normalized_key(name)] = self.normalized[name]
        return payload

    @classmethod
    def from_json(cls, payload: JsonDict, instruments: Iterable[str]) -> "ObservationRow":
        """Build a row from its JSON object.

        Raises KeyError/TypeError/ValueError on a malformed object; the
        store converts those into :class:`CorruptStateError`.
        """

        if not isinstance(payload, dict):
            raise TypeError(f"series row must be an object, got {type(payload).__name__}")
        closes: Dict[str, float] = {}
        normalized: Dict[str, float] = {}
        for name in instruments:
            closes[name] = _positive_number(payload[close_key(name)], close_key(name))
            normalized[name] = _positive_number(payload[normalized_key(name)], normalized_key(name))
        return cls(date=str(payload["date"]), closes=closes, normalized=normalized)


@dataclass
class NormalizedSeriesDocument:
    """The persisted state of the normalized series.

    Attributes:
        base_date: Date whose close defines normalized value 1.0.
        base_closes: Instrument name -> base-date close, ``None`` until
            the source has published it. Never overwritten once set.
        series: Rows ascending by date with no duplicate dates.
    """

    base_date: str
    base_closes: Dict[str, Optional[float]]
    series: List[ObservationRow] = field(default_factory=list)

    @classmethod
    def empty(cls, base_date: str, instruments: Iterable[str]) -> "NormalizedSeriesDocument":
        return cls(base_date=base_date, base_closes={name: None for name in instruments})

    @property
    def last_date(self) -> Optional[str]:
        return self.series[-1].date if self.series else None

    def missing_base_closes(self) -> List[str]:
        return [name for name, close in self.base_closes.items() if close is None]

    def to_json(self) -> JsonDict:
        names = list(self.base_closes)
        payload: JsonDict = {"baseDate": self.base_date}
        for name in names:
            payload[base_close_key(name)] = self.base_closes[name]
        payload["series"] = [row.to_json(names) for row in self.series]
        return payload

    @classmethod
    def from_json(cls, payload: JsonDict, instruments: Iterable[str]) -> "NormalizedSeriesDocument":
        if not isinstance(payload, dict):
            raise TypeError(f"document must be an object, got {type(payload).__name__}")

        names = list(instruments)
        base_date = payload["baseDate"]
        if not isinstance(base_date, str):
            raise TypeError("baseDate must be a string")

        base_closes: Dict[str, Optional[float]] = {}
        for name in names:
            # Absent and null both mean "not yet known".
            value = payload.get(base_close_key(name))
            base_closes[name] = None if value is None else _positive_number(value, base_close_key(name))

        rows = payload["series"]
        if not isinstance(rows, list):
            raise TypeError("series must be a list")

        series = [ObservationRow.from_json(row, names) for row in rows]
        for previous, current in zip(series, series[1:]):
            if current.date <= previous.date:
                raise ValueError(
                    f"series dates must be strictly increasing: {current.date} follows {previous.date}"
                )

        return cls(base_date=base_date, base_closes=base_closes, series=series)


__all__ = [
    "ObservationRow",
    "NormalizedSeriesDocument",
    "base_close_key",
    "close_key",
    "normalized_key",
]
