from __future__ import annotations

import logging
from datetime import date
from typing import List

from .composite import CompositeSynthesizer
from .types import IndexRecord

logger = logging.getLogger("freight-engine")


class MockFallbackGenerator:
    """Reference readings served when every live source of a family failed.

    Output depends only on the family and the date, so repeated degraded
    runs converge on the same rows.
    """

    def generate(self, family, as_of: date | None = None) -> List[IndexRecord]:
        as_of = as_of or date.today()
        if not family.mock_readings:
            raise ValueError(f"{family.name} has no reference readings")
        records = [
            IndexRecord.from_reading(
                family.route_label(route),
                current_index,
                change,
                current_date=as_of,
                period_days=family.period_days,
                unit=unit,
                weighting=family.weights.weighting_for(family.route_label(route)),
            )
            for route, current_index, change, unit in family.mock_readings
        ]
        if family.synthesize_composite:
            records = CompositeSynthesizer.for_family(family).synthesize(records)
        logger.info("Using %d mock %s records for %s", len(records), family.name, as_of)
        return records
