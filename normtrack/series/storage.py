"""normtrack – JSON storage for the normalized series document.

The document lives in a single JSON file. Loading tolerates a missing
file (and missing parent directories) by returning a fresh document;
an existing file that cannot be decoded is fatal and is never repaired
or rotated here.

Saving writes to a temporary file next to the target and renames it
into place, so an interrupted run leaves either the previous document or
the new one on disk.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List

from normtrack.core.errors import CorruptStateError, PersistError
from normtrack.core.logging import get_logger
from normtrack.series.types import NormalizedSeriesDocument

logger = get_logger(__name__)


class SeriesStore:
    """Load and save :class:`NormalizedSeriesDocument` as JSON.

    Parameters
    ----------
    path:
        Location of the JSON document.
    base_date:
        Base date used for a fresh document.
    instruments:
        Instrument names tracked in the document, in output key order.
    """

    def __init__(self, path: Path, base_date: str, instruments: Iterable[str]) -> None:
        self._path = Path(path)
        self._base_date = base_date
        self._instruments: List[str] = list(instruments)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> NormalizedSeriesDocument:
        """Return the persisted document, or a fresh one if none exists.

        Raises:
            CorruptStateError: If the file exists but is not a valid
                series document.
        """

        if not self._path.exists():
            logger.info("SeriesStore.load: %s not found; starting a new document", self._path)
            return NormalizedSeriesDocument.empty(self._base_date, self._instruments)

        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise CorruptStateError(self._path, f"unreadable: {exc}") from exc

        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CorruptStateError(self._path, f"invalid JSON: {exc}") from exc

        try:
            doc = NormalizedSeriesDocument.from_json(payload, self._instruments)
        except (KeyError, TypeError, ValueError) as exc:
            raise CorruptStateError(self._path, f"unexpected structure: {exc!r}") from exc

        if doc.base_date != self._base_date:
            logger.warning(
                "SeriesStore.load: stored baseDate %s differs from configured %s; keeping stored value",
                doc.base_date,
                self._base_date,
            )

        logger.info(
            "SeriesStore.load: loaded %d rows from %s (last=%s)",
            len(doc.series),
            self._path,
            doc.last_date,
        )
        return doc

    def save(self, doc: NormalizedSeriesDocument) -> None:
        """Persist ``doc``, replacing any previous content.

        Raises:
            PersistError: If the document cannot be written.
        """

        try:
            text = json.dumps(doc.to_json(), indent=2, allow_nan=False)
        except ValueError as exc:
            raise PersistError(f"refusing to write non-finite values to {self._path}: {exc}") from exc

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
                    handle.flush()
                    os.fsync(handle.fileno())
                # mkstemp creates 0600 files; the document is not secret.
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistError(f"could not write {self._path}: {exc}") from exc

        logger.info("SeriesStore.save: wrote %d rows to %s", len(doc.series), self._path)


__all__ = ["SeriesStore"]
