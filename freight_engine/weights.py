"""Static weight tables.

Route weights (0-100) drive composite synthesis inside one index family;
family weights drive rate fusion across families.  Both are tunable
constants, not fitted values.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

COMPOSITE_KEYWORDS: Tuple[str, ...] = (
    "comprehensive",
    "composite",
    "total",
    "all routes",
)

COMPOSITE_WEIGHTING = 100.0


def is_composite_route(route: str) -> bool:
    label = (route or "").lower()
    return any(kw in label for kw in COMPOSITE_KEYWORDS)


@dataclass(frozen=True)
class RouteWeightTable:
    """Ordered keyword -> weight lookup; the first keyword contained in a route wins."""

    entries: Tuple[Tuple[str, float], ...]
    default: float = 0.0

    def __post_init__(self) -> None:
        for keyword, weight in self.entries:
            if not 0.0 <= weight <= 100.0:
                raise ValueError(f"route weight for {keyword!r} outside 0-100: {weight}")

    @classmethod
    def of(cls, pairs: Iterable[Tuple[str, float]], default: float = 0.0) -> "RouteWeightTable":
        return cls(tuple((kw.lower(), float(w)) for kw, w in pairs), default=default)

    def lookup(self, route: str) -> float:
        label = (route or "").lower()
        for keyword, weight in self.entries:
            if keyword in label:
                return weight
        return self.default

    def weighting_for(self, route: str) -> float:
        """Weighting stored on a record: composites always carry the full weight."""
        if is_composite_route(route):
            return COMPOSITE_WEIGHTING
        return self.lookup(route)


# More specific keywords first ("west coast" before "north america").
SCFI_ROUTE_WEIGHTS = RouteWeightTable.of(
    [
        ("europe", 20.0),
        ("mediterranean", 10.0),
        ("west coast", 20.0),
        ("east coast", 7.5),
        ("persian gulf", 7.5),
        ("australia", 5.0),
        ("new zealand", 5.0),
        ("west africa", 2.5),
        ("south africa", 2.5),
        ("south america", 2.5),
        ("west japan", 2.5),
        ("east japan", 2.5),
        ("southeast asia", 7.5),
        ("korea", 2.5),
    ]
)

CCFI_ROUTE_WEIGHTS = RouteWeightTable.of(
    [
        ("europe", 21.0),
        ("mediterranean", 9.0),
        ("west coast", 18.0),
        ("east coast", 8.0),
        ("persian gulf", 6.0),
        ("australia", 5.0),
        ("new zealand", 5.0),
        ("south africa", 3.0),
        ("south america", 4.0),
        ("japan", 8.0),
        ("southeast asia", 10.0),
        ("korea", 4.0),
        ("east/west africa", 4.0),
    ]
)

FBX_ROUTE_WEIGHTS = RouteWeightTable.of(
    [
        ("north europe", 25.0),
        ("mediterranean", 15.0),
        ("west coast", 25.0),
        ("east coast", 20.0),
        ("south america", 7.5),
        ("middle east", 7.5),
    ]
)

WCI_ROUTE_WEIGHTS = RouteWeightTable.of(
    [
        ("rotterdam - shanghai", 5.0),
        ("los angeles - shanghai", 5.0),
        ("new york - rotterdam", 2.5),
        ("rotterdam - new york", 2.5),
        ("shanghai - rotterdam", 25.0),
        ("shanghai - genoa", 15.0),
        ("shanghai - los angeles", 25.0),
        ("shanghai - new york", 20.0),
    ]
)

BDI_ROUTE_WEIGHTS = RouteWeightTable.of(
    [
        ("capesize", 40.0),
        ("panamax", 30.0),
        ("supramax", 30.0),
    ]
)


# Fusion weights per independent family
FAMILY_WEIGHTS: Dict[str, float] = {
    "SCFI": 1.2,
    "FBX": 1.2,
    "WCI": 1.2,
    "XSI": 1.2,
    "PLATTS": 1.2,
    "CTS": 1.0,
    "ALPHALINER": 1.0,
}

DEFAULT_FAMILY_WEIGHT = 1.0


def family_weight(family: str, table: Dict[str, float] | None = None) -> float:
    weights = FAMILY_WEIGHTS if table is None else table
    return float(weights.get(family.upper(), DEFAULT_FAMILY_WEIGHT))
