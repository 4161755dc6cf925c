import random
from datetime import date

import pytest

from freight_engine.errors import NoSourceData, PersistenceError
from freight_engine.fusion import RateFusionEngine, apply_weight_adjustment, weight_adjustment_factor
from freight_engine.types import IndexRecord


def _reading(route, value, day=date(2024, 3, 15)):
    return IndexRecord.from_reading(route, value, 0.0, current_date=day)


def test_fuse_three_equal_weight_readings():
    estimate = RateFusionEngine().fuse({"SCFI": 1000.0, "FBX": 1050.0, "WCI": 1100.0})

    assert estimate.point_estimate == 1050.0
    assert estimate.min_bound == 1000.0
    assert estimate.max_bound == 1100.0
    assert estimate.reliability == 0.97
    assert estimate.contributing_sources == frozenset({"SCFI", "FBX", "WCI"})


def test_band_is_clamped_to_twenty_percent():
    estimate = RateFusionEngine().fuse({"SCFI": 500.0, "FBX": 1500.0})

    assert estimate.point_estimate == 1000.0
    assert estimate.min_bound == 800.0
    assert estimate.max_bound == 1200.0
    # coefficient of variation above the cap leaves only the floor
    assert estimate.reliability == 0.7


def test_single_reading_has_zero_band_and_partial_coverage():
    estimate = RateFusionEngine().fuse({"SCFI": 2000.0, "FBX": None, "WCI": 0})

    assert estimate.min_bound == estimate.point_estimate == estimate.max_bound == 2000.0
    assert estimate.reliability == 0.8
    assert estimate.contributing_sources == frozenset({"SCFI"})


def test_family_weights_shift_the_mean():
    fusion = RateFusionEngine(families=("A", "B"), family_weights={"A": 1.0, "B": 3.0})

    assert fusion.fuse({"A": 100.0, "B": 200.0}).point_estimate == 175.0


def test_fuse_without_readings_raises():
    with pytest.raises(NoSourceData):
        RateFusionEngine().fuse({"SCFI": None, "FBX": None})


@pytest.mark.parametrize(
    "weight,container,expected",
    [
        (25000.0, "40DV", 1.0),
        (12500.0, "40DV", 0.95),
        (37500.0, "40HC", 1.15),
        (60000.0, "40DV", 1.3),
        (500.0, "20DV", 1.0),
        (None, "20DV", 1.0),
        (27000.0, "45HC", 1.0),
        (10000.0, "53HC", 0.95),
    ],
)
def test_weight_adjustment_factor(weight, container, expected):
    assert weight_adjustment_factor(weight, container) == pytest.approx(expected)


def _assert_band(estimate):
    assert estimate.min_bound <= estimate.point_estimate <= estimate.max_bound
    assert estimate.min_bound >= estimate.point_estimate * 0.8
    assert estimate.max_bound <= estimate.point_estimate * 1.2


def test_readings_within_bounds_and_reliability_range():
    rng = random.Random(7)
    fusion = RateFusionEngine()
    for _ in range(200):
        readings = {f: rng.uniform(100, 4000) for f in ("SCFI", "FBX", "WCI") if rng.random() < 0.9}
        if not readings:
            continue
        estimate = fusion.fuse(readings)
        _assert_band(estimate)
        assert 0.7 <= estimate.reliability <= 1.0
        for weight in (500.0, 12345.6, 25000.0, 41234.5, 80000.0):
            _assert_band(apply_weight_adjustment(estimate, "40DV", weight))


def test_clamped_band_holds_against_rounded_point():
    estimate = RateFusionEngine().fuse({"SCFI": 500.0, "FBX": 1500.012})

    assert estimate.point_estimate == 1000.01
    assert estimate.min_bound == 800.01
    assert estimate.max_bound == 1200.01
    _assert_band(estimate)
    _assert_band(apply_weight_adjustment(estimate, "20DV", 23456.7))


def test_baseline_when_no_family_has_data():
    fusion = RateFusionEngine(store=None)

    first = fusion.estimate_rate("Asia", "Europe", "40DV", 25000.0)
    second = fusion.estimate_rate("Asia", "Europe", "40DV", 25000.0)

    assert first.contributing_sources == frozenset({"baseline"})
    assert first.degraded
    assert 0.7 <= first.reliability < 0.9
    assert 1000.0 <= first.point_estimate <= 3000.0
    assert first.min_bound < first.point_estimate < first.max_bound
    assert first == second


def test_estimate_from_stored_indices(store):
    store.upsert("SCFI", [_reading("SCFI Europe", 2000.0)])
    store.upsert("FBX", [_reading("FBX China/East Asia - North Europe", 2100.0)])
    store.upsert(
        "WCI",
        [_reading("WCI Rotterdam - Shanghai", 900.0), _reading("WCI Shanghai - Rotterdam", 2200.0)],
    )

    estimate = RateFusionEngine(store).estimate_rate("Far East", "North Europe", "40DV", 25000.0)

    assert estimate.point_estimate == 2100.0
    assert estimate.min_bound == 2000.0
    assert estimate.max_bound == 2200.0
    assert estimate.contributing_sources == frozenset({"SCFI", "FBX", "WCI"})
    assert estimate.weight_factor == 1.0
    assert estimate.to_dict()["source_count"] == 3


def test_weight_adjustment_scales_whole_band(store):
    store.upsert("SCFI", [_reading("SCFI Europe", 2000.0)])

    estimate = RateFusionEngine(store).estimate_rate("Asia", "Europe", "40DV", 50000.0)

    assert estimate.point_estimate == 2600.0
    assert estimate.min_bound == estimate.max_bound == 2600.0
    assert estimate.weight_factor == 1.3


class _BrokenWciStore:
    def latest_by_route(self, family, candidates):
        if family == "WCI":
            raise PersistenceError("index read failed")
        if family == "SCFI":
            return _reading("SCFI Europe", 1500.0)
        return None


def test_read_failure_counts_as_absent_family():
    estimate = RateFusionEngine(_BrokenWciStore()).estimate_rate("Asia", "Europe", "40DV", 25000.0)

    assert estimate.contributing_sources == frozenset({"SCFI"})
    assert estimate.point_estimate == 1500.0
