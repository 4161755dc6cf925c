from __future__ import annotations

import logging
from typing import List, Sequence

from .types import UNIT_POINTS, IndexRecord
from .weights import COMPOSITE_WEIGHTING, RouteWeightTable, is_composite_route

logger = logging.getLogger("freight-engine")


def _weighted_level(values: Sequence[float], weights: Sequence[float]) -> float:
    total = sum(weights)
    if total <= 0:
        return round(sum(values) / len(values), 2)
    return round(sum(v * w for v, w in zip(values, weights)) / total, 2)


class CompositeSynthesizer:
    """Derive a family's composite reading from its route readings.

    The composite change is the difference of the two weighted levels, never
    a sum of route changes, so rounding cannot drift between the two.
    """

    def __init__(self, weights: RouteWeightTable, composite_route: str):
        self.weights = weights
        self.composite_route = composite_route

    @classmethod
    def for_family(cls, family) -> "CompositeSynthesizer":
        return cls(family.weights, family.composite_route)

    def synthesize(self, records: Sequence[IndexRecord]) -> List[IndexRecord]:
        out = list(records)
        if not out or any(is_composite_route(r.route) for r in out):
            return out

        weights = [self.weights.lookup(r.route) for r in out]
        current = _weighted_level([r.current_index for r in out], weights)
        previous = _weighted_level(
            [
                r.previous_index if r.previous_index is not None else r.current_index - r.change
                for r in out
            ],
            weights,
        )
        current_date = max(r.current_date for r in out)
        previous_dates = [r.previous_date for r in out if r.previous_date is not None]
        previous_date = max(previous_dates) if previous_dates else current_date

        composite = IndexRecord.from_levels(
            self.composite_route,
            current,
            previous,
            current_date=current_date,
            previous_date=previous_date,
            unit=UNIT_POINTS,
            weighting=COMPOSITE_WEIGHTING,
        )
        logger.info(
            "Synthesized %s from %d routes: %.2f (%+.2f)",
            self.composite_route,
            len(out),
            composite.current_index,
            composite.change,
        )
        return [composite] + out
