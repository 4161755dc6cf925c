"""Fuse independent index families into one freight-rate estimate.

The band, reliability and weight-class constants are heuristics; treat them
as tuning parameters rather than fitted values.
"""
from __future__ import annotations

import logging
import math
import random
import zlib
from dataclasses import replace
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .errors import NoSourceData, PersistenceError
from .families import FUSION_FAMILIES
from .routing import route_candidates
from .types import BASELINE_SOURCE, RateEstimate
from .weights import FAMILY_WEIGHTS, family_weight

logger = logging.getLogger("freight-engine")

BAND_FLOOR = 0.8
BAND_CEILING = 1.2
RELIABILITY_FLOOR = 0.7
RELIABILITY_SPAN = 0.3
CV_CAP = 0.5

# Standard gross cargo weight per container class, kg
STANDARD_WEIGHTS: Dict[str, float] = {
    "20DV": 20000.0,
    "40DV": 25000.0,
    "40HC": 25000.0,
    "45HC": 27000.0,
}
DEFAULT_STANDARD_WEIGHT = 20000.0
MIN_ADJUSTABLE_WEIGHT = 1000.0
MAX_UNDERWEIGHT_DISCOUNT = 0.1
MAX_OVERWEIGHT_PREMIUM = 0.3

BASELINE_MIN_RATE = 1000.0
BASELINE_MAX_RATE = 3000.0


def sample_std_dev(values: Sequence[float]) -> float:
    """Sample standard deviation (N-1 denominator); 0 below two values."""
    n = len(values)
    if n < 2:
        return 0.0
    mean = sum(values) / n
    return math.sqrt(sum((v - mean) ** 2 for v in values) / (n - 1))


def weight_adjustment_factor(cargo_weight: Optional[float], container_class: Optional[str]) -> float:
    """Multiplier for the cargo weight relative to the container class's standard tonnage.

    Underweight cargo earns up to a 10% discount, overweight cargo pays up to
    a 30% premium (reached at twice the standard weight).  Missing or
    implausibly small weights leave the rate untouched.
    """
    if not cargo_weight or cargo_weight < MIN_ADJUSTABLE_WEIGHT:
        return 1.0
    standard = STANDARD_WEIGHTS.get((container_class or "").upper(), DEFAULT_STANDARD_WEIGHT)
    if cargo_weight < standard:
        return (1.0 - MAX_UNDERWEIGHT_DISCOUNT) + MAX_UNDERWEIGHT_DISCOUNT * (cargo_weight / standard)
    if cargo_weight > standard:
        excess = min(1.0, (cargo_weight - standard) / standard)
        return 1.0 + MAX_OVERWEIGHT_PREMIUM * excess
    return 1.0


def _band(point: float, low: float, high: float) -> Tuple[float, float]:
    """Round *low*/*high* to cents inside [0.8, 1.2] x the already rounded *point*."""
    floor, ceiling = point * BAND_FLOOR, point * BAND_CEILING
    min_bound = round(max(low, floor), 2)
    if min_bound < floor:
        min_bound = round(min_bound + 0.01, 2)
    max_bound = round(min(high, ceiling), 2)
    if max_bound > ceiling:
        max_bound = round(max_bound - 0.01, 2)
    return min_bound, max_bound


def apply_weight_adjustment(
    estimate: RateEstimate, container_class: Optional[str], cargo_weight: Optional[float]
) -> RateEstimate:
    factor = weight_adjustment_factor(cargo_weight, container_class)
    point = round(estimate.point_estimate * factor, 2)
    min_bound, max_bound = _band(point, estimate.min_bound * factor, estimate.max_bound * factor)
    return replace(
        estimate,
        point_estimate=point,
        min_bound=min_bound,
        max_bound=max_bound,
        container_class=container_class,
        cargo_weight=cargo_weight,
        weight_factor=round(factor, 4),
    )


def _request_seed(*parts) -> int:
    return zlib.crc32("|".join(str(p) for p in parts).encode("utf-8"))


class RateFusionEngine:
    def __init__(
        self,
        store=None,
        *,
        families: Sequence[str] = FUSION_FAMILIES,
        family_weights: Mapping[str, float] | None = None,
        max_known_families: int | None = None,
        rng: random.Random | None = None,
    ):
        self.store = store
        self.families = tuple(f.upper() for f in families)
        self.family_weights = dict(FAMILY_WEIGHTS if family_weights is None else family_weights)
        self.max_known_families = max_known_families or len(self.families) or 1
        self.rng = rng

    # ── Pure fusion ─────────────────────────────────────────────────────────

    def fuse(self, readings: Mapping[str, Optional[float]]) -> RateEstimate:
        """Combine one reading per family into an unadjusted estimate.

        Families with no (or a non-positive) reading are skipped; raises
        :class:`NoSourceData` when nothing is left.
        """
        available = {
            family: float(value)
            for family, value in readings.items()
            if value is not None and float(value) > 0
        }
        if not available:
            raise NoSourceData("no index family reported a reading")

        weights = {f: family_weight(f, self.family_weights) for f in available}
        total_weight = sum(weights.values())
        weighted_mean = sum(available[f] * weights[f] for f in available) / total_weight

        std_dev = sample_std_dev(list(available.values()))
        point = round(weighted_mean, 2)
        min_bound, max_bound = _band(point, point - std_dev, point + std_dev)

        cv = std_dev / weighted_mean if weighted_mean > 0 else 0.0
        coverage = min(1.0, len(available) / self.max_known_families)
        reliability = round(
            RELIABILITY_FLOOR
            + RELIABILITY_SPAN * coverage * (1.0 - min(cv, CV_CAP) / CV_CAP),
            2,
        )
        return RateEstimate(
            point_estimate=point,
            min_bound=min_bound,
            max_bound=max_bound,
            reliability=reliability,
            contributing_sources=frozenset(available),
        )

    def baseline(
        self,
        origin_region: str,
        destination_region: str,
        container_class: Optional[str],
        cargo_weight: Optional[float],
    ) -> RateEstimate:
        """Non-authoritative estimate used when no family has data."""
        rng = self.rng or random.Random(
            _request_seed(origin_region, destination_region, container_class, cargo_weight)
        )
        base = round(rng.uniform(BASELINE_MIN_RATE, BASELINE_MAX_RATE), 2)
        # integer hundredths keep the draw inside [0.70, 0.89]
        reliability = (70 + int(rng.random() * 20)) / 100
        min_bound, max_bound = _band(base, base * BAND_FLOOR, base * BAND_CEILING)
        estimate = RateEstimate(
            point_estimate=base,
            min_bound=min_bound,
            max_bound=max_bound,
            reliability=reliability,
            contributing_sources=frozenset({BASELINE_SOURCE}),
        )
        return apply_weight_adjustment(estimate, container_class, cargo_weight)

    # ── Store-backed estimate ───────────────────────────────────────────────

    def collect_readings(self, origin_region: str, destination_region: str) -> Dict[str, Optional[float]]:
        candidates = route_candidates(origin_region, destination_region)
        readings: Dict[str, Optional[float]] = {}
        for family in self.families:
            if self.store is None:
                readings[family] = None
                continue
            try:
                record = self.store.latest_by_route(family, candidates)
            except PersistenceError as exc:
                logger.warning("Reading %s for fusion failed: %s", family, exc)
                record = None
            readings[family] = record.current_index if record else None
            if record:
                logger.debug(
                    "%s reading for %s -> %s: %s = %.2f",
                    family,
                    origin_region,
                    destination_region,
                    record.route,
                    record.current_index,
                )
        return readings

    def estimate_rate(
        self,
        origin_region: str,
        destination_region: str,
        container_class: Optional[str] = "40DV",
        cargo_weight: Optional[float] = DEFAULT_STANDARD_WEIGHT,
    ) -> RateEstimate:
        readings = self.collect_readings(origin_region, destination_region)
        try:
            estimate = self.fuse(readings)
        except NoSourceData:
            logger.warning(
                "No index data for %s -> %s; using degraded baseline",
                origin_region,
                destination_region,
            )
            return self.baseline(origin_region, destination_region, container_class, cargo_weight)
        adjusted = apply_weight_adjustment(estimate, container_class, cargo_weight)
        logger.info(
            "Estimated %s -> %s %s: %.2f [%.2f, %.2f] reliability=%.2f from %s",
            origin_region,
            destination_region,
            container_class,
            adjusted.point_estimate,
            adjusted.min_bound,
            adjusted.max_bound,
            adjusted.reliability,
            ",".join(sorted(adjusted.contributing_sources)),
        )
        return adjusted
