"""normtrack – top-level package exports.

This module re-exports the update entry point and the series types for
convenience.
"""

from normtrack.core.config import LastDatePolicy, TrackerConfig, load_config
from normtrack.pipeline.update import UpdateResult, run_update
from normtrack.series.types import NormalizedSeriesDocument, ObservationRow
