"""Registry of the supported index families and their ordered sources.

Locators default to the public pages each index is published on and can be
overridden per deployment with ``FREIGHT_<FAMILY>_URL`` (primary) and
``FREIGHT_<FAMILY>_ALT_URL`` (first alternate).
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from .errors import UnknownFamilyError
from .types import (
    STRATEGY_TABLE,
    STRATEGY_TEXT,
    STRATEGY_VALUE,
    UNIT_PER_FEU,
    UNIT_PER_TEU,
    UNIT_POINTS,
    SourceDescriptor,
)
from .weights import (
    BDI_ROUTE_WEIGHTS,
    CCFI_ROUTE_WEIGHTS,
    FBX_ROUTE_WEIGHTS,
    SCFI_ROUTE_WEIGHTS,
    WCI_ROUTE_WEIGHTS,
    RouteWeightTable,
)

# (route suffix, current index, change, unit); composite first
MockReading = Tuple[str, float, float, str]


@dataclass(frozen=True)
class IndexFamily:
    name: str
    title: str
    route_prefix: str
    composite_route: str
    sources: Tuple[SourceDescriptor, ...]
    weights: RouteWeightTable
    period_days: int = 7
    synthesize_composite: bool = True
    mock_readings: Tuple[MockReading, ...] = field(default=(), compare=False)

    @property
    def table(self) -> str:
        return f"freight_indices_{self.name.lower()}"

    def route_label(self, route: str) -> str:
        """Prefix a raw route label with the family name unless already present."""
        label = " ".join(route.split())
        if not self.route_prefix or label.upper().startswith(self.route_prefix.upper()):
            return label
        return f"{self.route_prefix} {label}"

    def ordered_sources(self) -> List[SourceDescriptor]:
        return sorted(self.sources, key=lambda s: s.priority)


def _locator(family: str, default: str, *, alternate: bool = False) -> str:
    key = f"FREIGHT_{family}_{'ALT_URL' if alternate else 'URL'}"
    return os.getenv(key, "").strip() or default


def _scfi() -> IndexFamily:
    return IndexFamily(
        name="SCFI",
        title="Shanghai Containerized Freight Index",
        route_prefix="SCFI",
        composite_route="SCFI Composite Index",
        weights=SCFI_ROUTE_WEIGHTS,
        sources=(
            SourceDescriptor(
                name="sse",
                locator=_locator("SCFI", "https://en.sse.net.cn/indices/scfinew.jsp"),
                extraction_strategy=STRATEGY_TABLE,
                priority=0,
                options={
                    "table_selector": "table.scfitable",
                    "keywords": ("SCFI", "Shanghai Containerized"),
                    "value_selector": ".scfi-composite",
                    "change_selector": ".scfi-change",
                },
            ),
            SourceDescriptor(
                name="freightwaves",
                locator=_locator(
                    "SCFI",
                    "https://www.freightwaves.com/news/tag/scfi",
                    alternate=True,
                ),
                extraction_strategy=STRATEGY_TEXT,
                priority=1,
                options={"keywords": ("SCFI",)},
            ),
        ),
        mock_readings=(
            ("Composite Index", 1950.0, 25.0, UNIT_POINTS),
            ("Europe", 2020.0, 35.0, UNIT_PER_TEU),
            ("Mediterranean", 2980.0, 30.0, UNIT_PER_TEU),
            ("North America West Coast", 2250.0, 40.0, UNIT_PER_FEU),
            ("North America East Coast", 2350.0, 45.0, UNIT_PER_FEU),
            ("Southeast Asia", 1750.0, 15.0, UNIT_PER_TEU),
        ),
    )


def _ccfi() -> IndexFamily:
    return IndexFamily(
        name="CCFI",
        title="China Containerized Freight Index",
        route_prefix="CCFI",
        composite_route="CCFI Composite Index",
        weights=CCFI_ROUTE_WEIGHTS,
        sources=(
            SourceDescriptor(
                name="sse",
                locator=_locator("CCFI", "https://en.sse.net.cn/indices/ccfinew.jsp"),
                extraction_strategy=STRATEGY_TABLE,
                priority=0,
                options={
                    "table_selector": "table.ccfitable",
                    "keywords": ("CCFI", "China Containerized"),
                    "value_selector": ".ccfi-composite",
                    "change_selector": ".ccfi-change",
                },
            ),
            SourceDescriptor(
                name="freightwaves",
                locator=_locator(
                    "CCFI",
                    "https://www.freightwaves.com/news/tag/ccfi",
                    alternate=True,
                ),
                extraction_strategy=STRATEGY_TEXT,
                priority=1,
                options={"keywords": ("CCFI",)},
            ),
        ),
        mock_readings=(
            ("Composite Index", 1850.0, 15.0, UNIT_POINTS),
            ("Europe", 1920.0, 25.0, UNIT_POINTS),
            ("North America West Coast", 2150.0, 30.0, UNIT_POINTS),
            ("North America East Coast", 2250.0, 35.0, UNIT_POINTS),
            ("Southeast Asia", 1650.0, 10.0, UNIT_POINTS),
        ),
    )


def _fbx() -> IndexFamily:
    return IndexFamily(
        name="FBX",
        title="Freightos Baltic Index",
        route_prefix="FBX",
        composite_route="FBX Global Composite Index",
        weights=FBX_ROUTE_WEIGHTS,
        sources=(
            SourceDescriptor(
                name="freightos",
                locator=_locator("FBX", "https://fbx.freightos.com/"),
                extraction_strategy=STRATEGY_TABLE,
                priority=0,
                options={
                    "keywords": ("FBX", "Freightos"),
                    "default_unit": UNIT_PER_FEU,
                },
            ),
            SourceDescriptor(
                name="freightos-terminal",
                locator=_locator(
                    "FBX",
                    "https://terminal.freightos.com/freightos-baltic-index-global-container-pricing-index/",
                    alternate=True,
                ),
                extraction_strategy=STRATEGY_TEXT,
                priority=1,
                options={
                    "keywords": ("FBX", "Global Container Index"),
                    "default_unit": UNIT_PER_FEU,
                },
            ),
        ),
        mock_readings=(
            ("Global Composite Index", 2100.0, -20.0, UNIT_PER_FEU),
            ("China/East Asia - North Europe", 2450.0, -35.0, UNIT_PER_FEU),
            ("China/East Asia - Mediterranean", 2900.0, -10.0, UNIT_PER_FEU),
            ("China/East Asia - North America West Coast", 2300.0, 15.0, UNIT_PER_FEU),
            ("China/East Asia - North America East Coast", 3300.0, 25.0, UNIT_PER_FEU),
        ),
    )


def _wci() -> IndexFamily:
    return IndexFamily(
        name="WCI",
        title="Drewry World Container Index",
        route_prefix="WCI",
        composite_route="WCI Composite Index",
        weights=WCI_ROUTE_WEIGHTS,
        sources=(
            SourceDescriptor(
                name="drewry",
                locator=_locator(
                    "WCI",
                    "https://www.drewry.co.uk/supply-chain-advisors/supply-chain-expertise/world-container-index-assessed-by-drewry",
                ),
                extraction_strategy=STRATEGY_TABLE,
                priority=0,
                options={
                    "keywords": ("WCI", "World Container Index", "Drewry"),
                    "default_unit": UNIT_PER_FEU,
                },
            ),
            SourceDescriptor(
                name="drewry-commentary",
                locator=_locator(
                    "WCI",
                    "https://www.freightwaves.com/news/tag/drewry",
                    alternate=True,
                ),
                extraction_strategy=STRATEGY_TEXT,
                priority=1,
                options={
                    "keywords": ("World Container Index", "WCI"),
                    "default_unit": UNIT_PER_FEU,
                },
            ),
        ),
        mock_readings=(
            ("Composite Index", 2150.0, -30.0, UNIT_PER_FEU),
            ("Shanghai - Rotterdam", 2500.0, -45.0, UNIT_PER_FEU),
            ("Shanghai - Genoa", 3000.0, -20.0, UNIT_PER_FEU),
            ("Shanghai - Los Angeles", 2400.0, 10.0, UNIT_PER_FEU),
            ("Shanghai - New York", 3400.0, 20.0, UNIT_PER_FEU),
        ),
    )


def _bdi() -> IndexFamily:
    return IndexFamily(
        name="BDI",
        title="Baltic Dry Index",
        route_prefix="",
        composite_route="Baltic Dry Index (BDI)",
        weights=BDI_ROUTE_WEIGHTS,
        period_days=1,
        synthesize_composite=False,
        sources=(
            SourceDescriptor(
                name="baltic-exchange",
                locator=_locator(
                    "BDI",
                    "https://www.balticexchange.com/en/data-services/market-information/dry-index.html",
                ),
                extraction_strategy=STRATEGY_VALUE,
                priority=0,
                options={
                    "value_selector": ".bdi-value",
                    "change_selector": ".bdi-change",
                },
            ),
            SourceDescriptor(
                name="tradingeconomics",
                locator=_locator(
                    "BDI",
                    "https://tradingeconomics.com/commodity/baltic-dry",
                    alternate=True,
                ),
                extraction_strategy=STRATEGY_VALUE,
                priority=1,
                options={
                    "value_selector": ".last-price",
                    "change_selector": ".last-change",
                },
            ),
        ),
        mock_readings=(("Baltic Dry Index (BDI)", 1450.0, -15.0, UNIT_POINTS),),
    )


_BUILDERS = {
    "SCFI": _scfi,
    "CCFI": _ccfi,
    "FBX": _fbx,
    "WCI": _wci,
    "BDI": _bdi,
}

FAMILY_NAMES: Tuple[str, ...] = tuple(_BUILDERS)

# Container-rate families combined by rate fusion
FUSION_FAMILIES: Tuple[str, ...] = ("SCFI", "FBX", "WCI")


def get_family(name: str) -> IndexFamily:
    """Return the family configuration, resolving locator overrides from the environment."""
    builder = _BUILDERS.get((name or "").strip().upper())
    if builder is None:
        raise UnknownFamilyError(name)
    return builder()


def all_families() -> Dict[str, IndexFamily]:
    return {name: get_family(name) for name in FAMILY_NAMES}
