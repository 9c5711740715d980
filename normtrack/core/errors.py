"""normtrack – error taxonomy.

Every failure that should abort an update run derives from
:class:`NormtrackError`; the CLI turns these into a non-zero exit.
Expected steady states (base close not yet published, nothing new to
append) are not errors and never raise.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional


class NormtrackError(Exception):
    """Base class for fatal update-run failures."""


class FetchError(NormtrackError):
    """Raised when the price source cannot be fetched.

    ``status`` is the HTTP status code, or ``None`` when the request
    failed before a response was received.
    """

    def __init__(self, status: Optional[int], url: str, message: Optional[str] = None) -> None:
        self.status = status
        self.url = url
        if message is None:
            message = f"HTTP {status} @ {url}" if status is not None else f"request failed @ {url}"
        super().__init__(message)


class ParseError(NormtrackError):
    """Raised when a response body cannot be read as CSV."""


class CorruptStateError(NormtrackError):
    """Raised when an existing series document cannot be decoded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"corrupt series document {path}: {reason}")


class PersistError(NormtrackError):
    """Raised when the series document cannot be written."""


class HistoryMismatchError(NormtrackError):
    """Raised under the strict policy when the last stored date vanished upstream."""

    def __init__(self, last_date: str) -> None:
        self.last_date = last_date
        super().__init__(
            f"last stored date {last_date} is not present in the fetched history"
        )


__all__ = [
    "NormtrackError",
    "FetchError",
    "ParseError",
    "CorruptStateError",
    "PersistError",
    "HistoryMismatchError",
]
