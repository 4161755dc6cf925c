from datetime import date

from freight_engine.types import (
    UNIT_PER_FEU,
    UNIT_PER_TEU,
    UNIT_POINTS,
    IndexRecord,
    RateEstimate,
    classify_unit,
)


def test_change_from_levels_is_rounded_difference():
    record = IndexRecord.from_levels(
        "SCFI Composite Index",
        977.26,
        1000.00,
        current_date=date(2024, 3, 15),
        previous_date=date(2024, 3, 8),
    )

    assert record.change == -22.74


def test_from_reading_derives_previous_period():
    record = IndexRecord.from_reading(
        "CCFI Europe", 1920.0, 25.0, current_date=date(2024, 3, 15), period_days=7
    )

    assert record.previous_index == 1895.0
    assert record.previous_date == date(2024, 3, 8)
    assert record.key == ("CCFI Europe", date(2024, 3, 15))
    assert record.to_dict()["current_date"] == "2024-03-15"


def test_classify_unit_markers():
    assert classify_unit("USD/FEU") == UNIT_PER_FEU
    assert classify_unit("USD per TEU") == UNIT_PER_TEU
    assert classify_unit("Index") == UNIT_POINTS
    assert classify_unit("Index", default=UNIT_PER_FEU) == UNIT_PER_FEU


def test_baseline_estimate_reports_no_source_count():
    estimate = RateEstimate(
        point_estimate=1500.0,
        min_bound=1200.0,
        max_bound=1800.0,
        reliability=0.75,
        contributing_sources=frozenset({"baseline"}),
    )

    assert estimate.degraded is True
    assert estimate.to_dict()["source_count"] == 0
