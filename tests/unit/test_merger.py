"""Unit tests for the series merger."""

from __future__ import annotations

from typing import Dict, Optional

import pytest

from normtrack.core.config import LastDatePolicy
from normtrack.core.errors import HistoryMismatchError
from normtrack.series.merger import (
    MergeStatus,
    candidate_dates,
    merge_observations,
    normalize,
    start_index,
)
from normtrack.series.types import NormalizedSeriesDocument


BASE_DATE = "2025-10-15"


def _doc(voo: Optional[float] = 100.0, qqq: Optional[float] = 100.0) -> NormalizedSeriesDocument:
    return NormalizedSeriesDocument(base_date=BASE_DATE, base_closes={"voo": voo, "qqq": qqq})


def _maps(voo: Dict[str, float], qqq: Dict[str, float]) -> Dict[str, Dict[str, float]]:
    return {"voo": voo, "qqq": qqq}


class TestNormalize:
    def test_rounds_to_six_places(self) -> None:
        value = normalize(288.60, 280.00)

        assert value == 1.030714
        assert value == round(288.60 / 280.00, 6)
        assert value != round(288.60 / 280.00, 5)
        assert value != round(288.60 / 280.00, 7)


class TestCandidateDates:
    def test_intersection_on_or_after_base_date_sorted(self) -> None:
        voo = {"2025-10-17": 1.0, "2025-10-14": 1.0, "2025-10-15": 1.0, "2025-10-16": 1.0}
        qqq = {"2025-10-16": 1.0, "2025-10-15": 1.0, "2025-10-14": 1.0, "2025-10-20": 1.0}

        assert candidate_dates(BASE_DATE, [voo, qqq]) == ["2025-10-15", "2025-10-16"]

    def test_no_maps(self) -> None:
        assert candidate_dates(BASE_DATE, []) == []


class TestStartIndex:
    CANDIDATES = ["2025-10-15", "2025-10-16", "2025-10-20", "2025-10-21"]

    def test_no_last_date_starts_at_zero(self) -> None:
        assert start_index(self.CANDIDATES, None) == 0

    def test_present_last_date_starts_after_it(self) -> None:
        assert start_index(self.CANDIDATES, "2025-10-16") == 2
        assert start_index(self.CANDIDATES, "2025-10-21") == 4

    def test_missing_last_date_resumes_after_it(self) -> None:
        # 2025-10-17 was dropped upstream; nothing before it is re-appended.
        assert start_index(self.CANDIDATES, "2025-10-17") == 2
        assert start_index(self.CANDIDATES, "2025-10-01") == 0

    def test_missing_last_date_fails_under_strict_policy(self) -> None:
        with pytest.raises(HistoryMismatchError) as excinfo:
            start_index(self.CANDIDATES, "2025-10-17", LastDatePolicy.STRICT)

        assert excinfo.value.last_date == "2025-10-17"

    def test_present_last_date_under_strict_policy(self) -> None:
        assert start_index(self.CANDIDATES, "2025-10-15", LastDatePolicy.STRICT) == 1


class TestMergeObservations:
    def test_appends_rows_to_empty_series(self) -> None:
        doc = _doc()
        prices = {"2025-10-15": 100.0, "2025-10-16": 110.0}

        result = merge_observations(doc, _maps(dict(prices), dict(prices)))

        assert result.status is MergeStatus.APPENDED
        assert result.rows_appended == 2
        assert [row.date for row in doc.series] == ["2025-10-15", "2025-10-16"]
        assert doc.series[1].normalized == {"voo": 1.1, "qqq": 1.1}
        assert doc.series[1].closes == {"voo": 110.0, "qqq": 110.0}
        assert result.last_date == "2025-10-16"

    def test_second_merge_with_same_data_appends_nothing(self) -> None:
        doc = _doc()
        prices = {"2025-10-15": 100.0, "2025-10-16": 110.0}
        maps = _maps(dict(prices), dict(prices))

        merge_observations(doc, maps)
        result = merge_observations(doc, maps)

        assert result.status is MergeStatus.NO_NEW_ROWS
        assert result.rows_appended == 0
        assert not result.changed
        assert len(doc.series) == 2

    def test_appends_only_dates_after_last_row(self) -> None:
        doc = _doc()
        merge_observations(doc, _maps({"2025-10-15": 100.0}, {"2025-10-15": 100.0}))

        maps = _maps(
            {"2025-10-16": 101.0, "2025-10-15": 100.0, "2025-10-17": 102.0},
            {"2025-10-17": 99.0, "2025-10-15": 100.0, "2025-10-16": 98.0},
        )
        result = merge_observations(doc, maps)

        assert result.rows_appended == 2
        assert [row.date for row in doc.series] == ["2025-10-15", "2025-10-16", "2025-10-17"]

    def test_base_close_pending_appends_nothing(self) -> None:
        doc = _doc(voo=None, qqq=None)
        maps = _maps({"2025-10-14": 99.0}, {"2025-10-14": 99.0})

        result = merge_observations(doc, maps)

        assert result.status is MergeStatus.BASE_PENDING
        assert result.rows_appended == 0
        assert doc.base_closes == {"voo": None, "qqq": None}
        assert doc.series == []

    def test_partial_base_close_is_kept_while_pending(self) -> None:
        doc = _doc(voo=None, qqq=None)
        maps = _maps({BASE_DATE: 280.0}, {"2025-10-14": 99.0})

        result = merge_observations(doc, maps)

        assert result.status is MergeStatus.BASE_PENDING
        assert result.base_closes_filled == ["voo"]
        assert result.changed
        assert doc.base_closes == {"voo": 280.0, "qqq": None}

    def test_base_close_filled_then_rows_appended(self) -> None:
        doc = _doc(voo=None, qqq=None)
        maps = _maps(
            {BASE_DATE: 280.0, "2025-10-16": 288.6},
            {BASE_DATE: 600.0, "2025-10-16": 606.0},
        )

        result = merge_observations(doc, maps)

        assert result.status is MergeStatus.APPENDED
        assert doc.base_closes == {"voo": 280.0, "qqq": 600.0}
        assert doc.series[0].normalized == {"voo": 1.0, "qqq": 1.0}
        assert doc.series[1].normalized == {"voo": 1.030714, "qqq": 1.01}

    def test_existing_base_close_is_never_overwritten(self) -> None:
        doc = _doc(voo=100.0, qqq=100.0)
        maps = _maps({BASE_DATE: 999.0}, {BASE_DATE: 555.0})

        result = merge_observations(doc, maps)

        assert doc.base_closes == {"voo": 100.0, "qqq": 100.0}
        assert result.base_closes_filled == []
        assert doc.series[0].normalized == {"voo": 9.99, "qqq": 5.55}

    def test_date_missing_for_one_instrument_is_not_appended(self) -> None:
        doc = _doc()
        maps = _maps(
            {"2025-10-15": 100.0, "2025-10-16": 101.0, "2025-10-17": 102.0},
            {"2025-10-15": 100.0, "2025-10-17": 103.0},
        )

        merge_observations(doc, maps)

        assert [row.date for row in doc.series] == ["2025-10-15", "2025-10-17"]

    def test_unusable_close_is_skipped(self) -> None:
        doc = _doc()
        maps = _maps(
            {"2025-10-15": 100.0, "2025-10-16": float("nan"), "2025-10-17": 0.0},
            {"2025-10-15": 100.0, "2025-10-16": 101.0, "2025-10-17": 102.0},
        )

        merge_observations(doc, maps)

        assert [row.date for row in doc.series] == ["2025-10-15"]

    def test_dates_before_base_date_are_ignored(self) -> None:
        doc = _doc()
        maps = _maps(
            {"2025-10-14": 90.0, "2025-10-15": 100.0},
            {"2025-10-14": 90.0, "2025-10-15": 100.0},
        )

        merge_observations(doc, maps)

        assert [row.date for row in doc.series] == ["2025-10-15"]

    def test_trimmed_history_does_not_reappend_rows(self) -> None:
        doc = _doc()
        merge_observations(
            doc,
            _maps(
                {"2025-10-15": 100.0, "2025-10-16": 101.0},
                {"2025-10-15": 100.0, "2025-10-16": 101.0},
            ),
        )

        # Upstream no longer has 2025-10-16 but has a newer day.
        trimmed = _maps(
            {"2025-10-15": 100.0, "2025-10-17": 102.0},
            {"2025-10-15": 100.0, "2025-10-17": 102.0},
        )
        result = merge_observations(doc, trimmed)

        assert result.rows_appended == 1
        assert [row.date for row in doc.series] == ["2025-10-15", "2025-10-16", "2025-10-17"]

    def test_trimmed_history_fails_under_strict_policy(self) -> None:
        doc = _doc()
        merge_observations(doc, _maps({"2025-10-16": 101.0}, {"2025-10-16": 101.0}))

        with pytest.raises(HistoryMismatchError):
            merge_observations(
                doc,
                _maps({"2025-10-17": 102.0}, {"2025-10-17": 102.0}),
                policy=LastDatePolicy.STRICT,
            )
        assert len(doc.series) == 1
