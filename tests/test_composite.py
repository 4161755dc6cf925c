from datetime import date

from freight_engine.composite import CompositeSynthesizer
from freight_engine.families import get_family
from freight_engine.types import UNIT_POINTS, IndexRecord
from freight_engine.weights import RouteWeightTable

D = date(2024, 3, 15)


def _reading(route, value, change):
    return IndexRecord.from_reading(route, value, change, current_date=D)


def test_composite_is_weighted_mean_with_level_difference_change():
    synth = CompositeSynthesizer(
        RouteWeightTable.of([("europe", 20.0), ("mediterranean", 10.0)]),
        "SCFI Composite Index",
    )
    records = [_reading("SCFI Europe", 1000.0, 30.0), _reading("SCFI Mediterranean", 1300.0, -30.0)]

    out = synth.synthesize(records)

    composite = out[0]
    assert composite.route == "SCFI Composite Index"
    assert composite.current_index == 1100.0
    # previous levels 970 and 1330 -> weighted 1090
    assert composite.previous_index == 1090.0
    assert composite.change == 10.0
    assert composite.unit == UNIT_POINTS
    assert composite.weighting == 100.0
    assert composite.previous_date == date(2024, 3, 8)
    assert out[1:] == records


def test_zero_total_weight_uses_arithmetic_mean():
    synth = CompositeSynthesizer(RouteWeightTable.of([]), "X Composite Index")

    out = synth.synthesize([_reading("X Lane A", 100.0, 0.0), _reading("X Lane B", 201.0, 0.0)])

    assert out[0].current_index == 150.5


def test_existing_composite_is_left_alone():
    scfi = get_family("SCFI")
    records = [_reading("SCFI Composite Index", 1950.0, 25.0), _reading("SCFI Europe", 2020.0, 35.0)]

    assert CompositeSynthesizer.for_family(scfi).synthesize(records) == records
    assert CompositeSynthesizer.for_family(scfi).synthesize([]) == []


def test_synthesis_is_deterministic():
    scfi = get_family("SCFI")
    records = [
        _reading("SCFI Europe", 2020.0, 35.0),
        _reading("SCFI North America West Coast", 2250.0, 40.0),
        _reading("SCFI Southeast Asia", 1750.0, 15.0),
    ]
    synth = CompositeSynthesizer.for_family(scfi)

    assert synth.synthesize(records) == synth.synthesize(list(records))
