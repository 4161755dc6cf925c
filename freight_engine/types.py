from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional


# Index units
UNIT_POINTS = "points"
UNIT_PER_TEU = "per_teu"
UNIT_PER_FEU = "per_feu"
UNITS = (UNIT_POINTS, UNIT_PER_TEU, UNIT_PER_FEU)

# Extraction strategies
STRATEGY_TABLE = "table"
STRATEGY_TEXT = "text"
STRATEGY_VALUE = "value"

# Sentinel source set for estimates built without any index data
BASELINE_SOURCE = "baseline"


def classify_unit(text: str, default: str = UNIT_POINTS) -> str:
    """Map a literal unit marker in *text* to a unit constant."""
    if "FEU" in text:
        return UNIT_PER_FEU
    if "TEU" in text:
        return UNIT_PER_TEU
    return default


@dataclass
class IndexRecord:
    route: str
    current_index: float
    change: float
    current_date: date
    previous_index: Optional[float] = None
    previous_date: Optional[date] = None
    unit: str = UNIT_POINTS
    weighting: float = 0.0

    @classmethod
    def from_reading(
        cls,
        route: str,
        current_index: float,
        change: float,
        *,
        current_date: date,
        period_days: int = 7,
        unit: str = UNIT_POINTS,
        weighting: float = 0.0,
    ) -> "IndexRecord":
        """Build a record from a published level and its change over one period."""
        return cls(
            route=route,
            current_index=current_index,
            change=change,
            current_date=current_date,
            previous_index=round(current_index - change, 2),
            previous_date=current_date - timedelta(days=period_days),
            unit=unit,
            weighting=weighting,
        )

    @classmethod
    def from_levels(
        cls,
        route: str,
        current_index: float,
        previous_index: float,
        *,
        current_date: date,
        previous_date: date,
        unit: str = UNIT_POINTS,
        weighting: float = 0.0,
    ) -> "IndexRecord":
        """Build a record from two levels; the change is their rounded difference."""
        return cls(
            route=route,
            current_index=current_index,
            change=round(current_index - previous_index, 2),
            current_date=current_date,
            previous_index=previous_index,
            previous_date=previous_date,
            unit=unit,
            weighting=weighting,
        )

    @property
    def key(self) -> tuple[str, date]:
        return (self.route, self.current_date)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "route": self.route,
            "unit": self.unit,
            "weighting": self.weighting,
            "previous_index": self.previous_index,
            "current_index": self.current_index,
            "change": self.change,
            "previous_date": self.previous_date.isoformat()
            if self.previous_date
            else None,
            "current_date": self.current_date.isoformat()
            if self.current_date
            else None,
        }


@dataclass(frozen=True)
class SourceDescriptor:
    name: str
    locator: str
    extraction_strategy: str
    priority: int = 0
    options: Dict[str, Any] = field(default_factory=dict, compare=False)

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


@dataclass
class FetchAttemptOutcome:
    success: bool
    records: List[IndexRecord] = field(default_factory=list)
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class RateEstimate:
    point_estimate: float
    min_bound: float
    max_bound: float
    reliability: float
    contributing_sources: frozenset
    container_class: Optional[str] = None
    cargo_weight: Optional[float] = None
    weight_factor: float = 1.0

    @property
    def degraded(self) -> bool:
        return self.contributing_sources == frozenset({BASELINE_SOURCE})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "point_estimate": self.point_estimate,
            "min_bound": self.min_bound,
            "max_bound": self.max_bound,
            "reliability": self.reliability,
            "contributing_sources": sorted(self.contributing_sources),
            "source_count": 0 if self.degraded else len(self.contributing_sources),
            "degraded": self.degraded,
            "container_class": self.container_class,
            "cargo_weight": self.cargo_weight,
            "weight_factor": self.weight_factor,
        }


@dataclass
class UpsertResult:
    succeeded: int = 0
    rejected: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"succeeded": self.succeeded, "rejected": self.rejected}
