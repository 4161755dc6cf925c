"""Map a region pair to the route keywords to look up in each index family."""
from __future__ import annotations

from typing import Dict, List, Tuple

from .weights import COMPOSITE_KEYWORDS

_REGION_ALIASES: Dict[str, str] = {
    "far east": "asia",
    "east asia": "asia",
    "china": "asia",
    "north europe": "europe",
    "northern europe": "europe",
    "med": "mediterranean",
    "usa": "north america",
    "us": "north america",
    "us west coast": "north america west coast",
    "uswc": "north america west coast",
    "us east coast": "north america east coast",
    "usec": "north america east coast",
    "middle east": "persian gulf",
    "oceania": "australia",
}

# Keywords are matched as substrings of the stored route labels.
REGION_ROUTES: Dict[Tuple[str, str], Tuple[str, ...]] = {
    ("asia", "europe"): ("north europe", "europe", "shanghai - rotterdam", "mediterranean"),
    ("asia", "mediterranean"): ("mediterranean", "shanghai - genoa", "europe"),
    ("asia", "north america west coast"): ("west coast", "shanghai - los angeles", "north america"),
    ("asia", "north america east coast"): ("east coast", "shanghai - new york", "north america"),
    ("asia", "north america"): ("west coast", "shanghai - los angeles", "east coast", "shanghai - new york"),
    ("asia", "asia"): ("southeast asia", "korea", "japan"),
    ("asia", "persian gulf"): ("persian gulf", "middle east"),
    ("asia", "australia"): ("australia", "new zealand"),
    ("asia", "south america"): ("south america",),
    ("asia", "africa"): ("west africa", "south africa", "africa"),
    ("europe", "asia"): ("rotterdam - shanghai", "europe - china"),
    ("north america west coast", "asia"): ("los angeles - shanghai",),
    ("north america", "asia"): ("los angeles - shanghai",),
    ("europe", "north america"): ("rotterdam - new york", "north europe - north america"),
    ("europe", "north america east coast"): ("rotterdam - new york",),
    ("north america", "europe"): ("new york - rotterdam",),
    ("north america east coast", "europe"): ("new york - rotterdam",),
}


def normalise_region(region: str) -> str:
    key = " ".join((region or "").lower().replace("_", " ").split())
    return _REGION_ALIASES.get(key, key)


def route_candidates(origin_region: str, destination_region: str) -> List[str]:
    """Ordered route keywords for a region pair, ending with the composite keywords."""
    origin = normalise_region(origin_region)
    destination = normalise_region(destination_region)
    candidates = list(REGION_ROUTES.get((origin, destination), ()))
    if not candidates and destination:
        candidates.append(destination)
    for kw in COMPOSITE_KEYWORDS:
        if kw not in candidates:
            candidates.append(kw)
    return candidates
