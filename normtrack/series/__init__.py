"""normtrack – Normalized series package.

Holds the persisted document model, its JSON store, and the merger that
appends base-normalized observations to it.
"""

from normtrack.series.merger import MergeResult, MergeStatus, merge_observations
from normtrack.series.storage import SeriesStore
from normtrack.series.types import NormalizedSeriesDocument, ObservationRow
