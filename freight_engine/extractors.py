"""Turn one fetched document into normalized index records.

Three strategies share one interface:

- ``TableExtractor`` for pages that publish a route table,
- ``TextExtractor`` for news/commentary prose quoting the headline figure,
- ``ValueExtractor`` for pages that show a single figure at a known selector.

Every strategy raises :class:`NoDataFound` when nothing usable is located;
the acquisition chain treats that exactly like a failed fetch.
"""
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from .errors import NoDataFound
from .types import (
    STRATEGY_TABLE,
    STRATEGY_TEXT,
    STRATEGY_VALUE,
    UNIT_POINTS,
    IndexRecord,
    SourceDescriptor,
    classify_unit,
)

logger = logging.getLogger("freight-engine")

_THOUSANDS_RE = re.compile(r"(?<=\d)[,\u00a0\u202f](?=\d{3}(?!\d))")
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
_SIGNED_RE = re.compile(r"([-+])?\s?(\d+(?:\.\d+)?)")
_PURE_NUMERIC_RE = re.compile(r"^\d+(?:\.\d+)?$")
_CURRENCY_RE = re.compile(r"[$€£¥]|\bUSD\b|\bUS\$")
_SIGNED_TOKEN_RE = re.compile(r"(?<![\w.])([-+])(\d+(?:\.\d+)?)")
_DIRECTION_RE = re.compile(
    r"\b(up|rose|rising|gained|increased|climbed|jumped|"
    r"down|fell|falling|dropped|decreased|declined|lost|slipped)\b"
    r"[^\d]{0,30}?(\d+(?:\.\d+)?)",
    re.IGNORECASE,
)
_NEGATIVE_WORDS = {
    "down",
    "fell",
    "falling",
    "dropped",
    "decreased",
    "declined",
    "lost",
    "slipped",
}

HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6")
DEFAULT_INDEX_COLUMN = 1
DEFAULT_PROXIMITY = 200


# ── Numeric parsing ─────────────────────────────────────────────────────────


def normalise_number_text(text: str) -> str:
    """Unify minus signs and drop thousands separators between digit groups."""
    cleaned = (text or "").replace("\u2212", "-")
    return _THOUSANDS_RE.sub("", cleaned)


def parse_index_value(text: str) -> Optional[float]:
    """Magnitude of the first decimal-or-integer run; any sign is ignored."""
    m = _NUMBER_RE.search(normalise_number_text(text))
    return float(m.group(0)) if m else None


def parse_change_value(text: str) -> Optional[float]:
    """First number in *text*, negated when a leading minus sign is attached."""
    m = _SIGNED_RE.search(normalise_number_text(text))
    if not m:
        return None
    value = float(m.group(2))
    return -value if m.group(1) == "-" else value


def is_pure_numeric(text: str) -> bool:
    return bool(_PURE_NUMERIC_RE.match(normalise_number_text(text).strip()))


def has_currency_marker(text: str) -> bool:
    return bool(_CURRENCY_RE.search(text or ""))


def _cell_text(cell: Tag) -> str:
    return " ".join(cell.get_text(" ", strip=True).split())


def _keywords(descriptor: SourceDescriptor) -> Tuple[str, ...]:
    return tuple(kw for kw in descriptor.option("keywords", ()) if kw)


def _soup(document: str) -> BeautifulSoup:
    if not document or not document.strip():
        raise NoDataFound("empty document")
    return BeautifulSoup(document, "html.parser")


# ── Table selection cascade ─────────────────────────────────────────────────

TableSelector = Callable[[BeautifulSoup, SourceDescriptor], List[Tag]]


def _tables_by_selector(soup: BeautifulSoup, descriptor: SourceDescriptor) -> List[Tag]:
    selector = descriptor.option("table_selector")
    if not selector:
        return []
    tables: List[Tag] = []
    for el in soup.select(selector):
        if el.name == "table":
            tables.append(el)
        else:
            tables.extend(el.find_all("table"))
    return tables


def _tables_by_keyword(soup: BeautifulSoup, descriptor: SourceDescriptor) -> List[Tag]:
    keywords = [kw.lower() for kw in _keywords(descriptor)]
    if not keywords:
        return []
    return [
        table
        for table in soup.find_all("table")
        if any(kw in table.get_text(" ").lower() for kw in keywords)
    ]


def _tables_after_heading(soup: BeautifulSoup, descriptor: SourceDescriptor) -> List[Tag]:
    keywords = [kw.lower() for kw in _keywords(descriptor)]
    if not keywords:
        return []
    tables: List[Tag] = []
    for heading in soup.find_all(HEADING_TAGS):
        if not any(kw in heading.get_text(" ").lower() for kw in keywords):
            continue
        table = heading.find_next("table")
        if table is not None and table not in tables:
            tables.append(table)
    return tables


def _all_tables(soup: BeautifulSoup, descriptor: SourceDescriptor) -> List[Tag]:
    return soup.find_all("table")


TABLE_SELECTION_STRATEGIES: Tuple[Tuple[str, TableSelector], ...] = (
    ("selector", _tables_by_selector),
    ("keyword", _tables_by_keyword),
    ("heading", _tables_after_heading),
    ("all", _all_tables),
)


def select_tables(
    soup: BeautifulSoup, descriptor: SourceDescriptor
) -> Tuple[Optional[str], List[Tag]]:
    """Return the first strategy name that found tables, and those tables."""
    for name, strategy in TABLE_SELECTION_STRATEGIES:
        tables = strategy(soup, descriptor)
        if tables:
            return name, tables
    return None, []


# ── Extractors ──────────────────────────────────────────────────────────────


class Extractor:
    strategy = ""

    def __init__(self, descriptor: SourceDescriptor):
        self.descriptor = descriptor

    @property
    def default_unit(self) -> str:
        return self.descriptor.option("default_unit", UNIT_POINTS)

    def extract(self, document: str, *, family, as_of: date) -> List[IndexRecord]:
        raise NotImplementedError

    def _record(
        self, family, route: str, current_index: float, change: float, unit: str, as_of: date
    ) -> IndexRecord:
        label = family.route_label(route)
        return IndexRecord.from_reading(
            label,
            current_index,
            change,
            current_date=as_of,
            period_days=family.period_days,
            unit=unit,
            weighting=family.weights.weighting_for(label),
        )


class TableExtractor(Extractor):
    strategy = STRATEGY_TABLE

    def index_column(self, texts: Sequence[str]) -> Optional[int]:
        """Locate the index-value column among the non-route cells of one row."""
        for i in range(1, len(texts)):
            if is_pure_numeric(texts[i]):
                return i
        for i in range(1, len(texts)):
            if has_currency_marker(texts[i]) and parse_index_value(texts[i]) is not None:
                return i
        fixed = int(self.descriptor.option("index_column", DEFAULT_INDEX_COLUMN))
        return fixed if 0 < fixed < len(texts) else None

    def parse_table(self, table: Tag, *, family, as_of: date) -> List[IndexRecord]:
        rows = table.find_all("tr")
        if not rows:
            return []
        header_text = _cell_text(rows[0])
        records: List[IndexRecord] = []
        for row in rows[1:]:
            texts = [_cell_text(c) for c in row.find_all(["td", "th"])]
            if len(texts) < 2:
                continue
            route = texts[0]
            if not route:
                continue
            col = self.index_column(texts)
            if col is None:
                continue
            current_index = parse_index_value(texts[col])
            if current_index is None:
                continue
            change = None
            if col + 1 < len(texts):
                change = parse_change_value(texts[col + 1])
            unit = classify_unit(" ".join(texts), default="")
            if not unit:
                unit = classify_unit(header_text, default=self.default_unit)
            records.append(
                self._record(family, route, current_index, change or 0.0, unit, as_of)
            )
        return records

    def extract(self, document: str, *, family, as_of: date) -> List[IndexRecord]:
        soup = _soup(document)
        strategy, tables = select_tables(soup, self.descriptor)
        records: List[IndexRecord] = []
        for table in tables:
            records.extend(self.parse_table(table, family=family, as_of=as_of))
        if records:
            logger.debug(
                "%s/%s: %d rows via %s table selection",
                family.name,
                self.descriptor.name,
                len(records),
                strategy,
            )
            return records
        if self.descriptor.option("value_selector"):
            return ValueExtractor(self.descriptor).extract_from(soup, family=family, as_of=as_of)
        raise NoDataFound(
            f"{family.name}/{self.descriptor.name}: no parseable table rows"
        )


class TextExtractor(Extractor):
    strategy = STRATEGY_TEXT

    def _blocks(self, soup: BeautifulSoup) -> List[str]:
        articles = soup.find_all("article")
        nodes = articles or [soup.body or soup]
        return [normalise_number_text(" ".join(n.get_text(" ", strip=True).split())) for n in nodes]

    @staticmethod
    def find_change(text: str) -> float:
        """First signed number, or direction word plus number, in *text*; 0 if absent."""
        candidates = []
        signed = _SIGNED_TOKEN_RE.search(text)
        if signed:
            value = float(signed.group(2))
            candidates.append((signed.start(), -value if signed.group(1) == "-" else value))
        worded = _DIRECTION_RE.search(text)
        if worded:
            value = float(worded.group(2))
            negative = worded.group(1).lower() in _NEGATIVE_WORDS
            candidates.append((worded.start(), -value if negative else value))
        if not candidates:
            return 0.0
        return min(candidates, key=lambda c: c[0])[1]

    @staticmethod
    def _first_level(window: str) -> Optional[re.Match]:
        # percentages quote the move, not the level
        for m in _NUMBER_RE.finditer(window):
            if window[m.end() : m.end() + 2].lstrip().startswith("%"):
                continue
            return m
        return None

    def find_reading(self, text: str) -> Optional[Tuple[float, float, str]]:
        proximity = int(self.descriptor.option("proximity", DEFAULT_PROXIMITY))
        lowered = text.lower()
        for keyword in _keywords(self.descriptor):
            start = lowered.find(keyword.lower())
            while start != -1:
                window_start = start + len(keyword)
                window = text[window_start : window_start + proximity]
                m = self._first_level(window)
                if m:
                    index_end = window_start + m.end()
                    tail = text[index_end : index_end + proximity]
                    snippet = text[start : index_end + 20]
                    return float(m.group(0)), self.find_change(tail), snippet
                start = lowered.find(keyword.lower(), start + 1)
        return None

    def extract(self, document: str, *, family, as_of: date) -> List[IndexRecord]:
        soup = _soup(document)
        for text in self._blocks(soup):
            reading = self.find_reading(text)
            if reading is None:
                continue
            current_index, change, snippet = reading
            unit = classify_unit(snippet, default=self.default_unit)
            return [
                self._record(family, family.composite_route, current_index, change, unit, as_of)
            ]
        raise NoDataFound(
            f"{family.name}/{self.descriptor.name}: no keyword-proximate figure"
        )


class ValueExtractor(Extractor):
    strategy = STRATEGY_VALUE

    def extract_from(self, soup: BeautifulSoup, *, family, as_of: date) -> List[IndexRecord]:
        value_selector = self.descriptor.option("value_selector")
        value_el = soup.select_one(value_selector) if value_selector else None
        value_text = _cell_text(value_el) if value_el is not None else ""
        current_index = parse_index_value(value_text)
        if current_index is None:
            raise NoDataFound(
                f"{family.name}/{self.descriptor.name}: no value at {value_selector!r}"
            )
        change = 0.0
        change_selector = self.descriptor.option("change_selector")
        change_el = soup.select_one(change_selector) if change_selector else None
        if change_el is not None:
            change = parse_change_value(_cell_text(change_el)) or 0.0
        context = _cell_text(value_el.parent) if value_el.parent is not None else value_text
        unit = classify_unit(context, default=self.default_unit)
        return [self._record(family, family.composite_route, current_index, change, unit, as_of)]

    def extract(self, document: str, *, family, as_of: date) -> List[IndexRecord]:
        return self.extract_from(_soup(document), family=family, as_of=as_of)


EXTRACTORS: Dict[str, type] = {
    STRATEGY_TABLE: TableExtractor,
    STRATEGY_TEXT: TextExtractor,
    STRATEGY_VALUE: ValueExtractor,
}


def extractor_for(descriptor: SourceDescriptor) -> Extractor:
    try:
        cls: Any = EXTRACTORS[descriptor.extraction_strategy]
    except KeyError:
        raise ValueError(
            f"unknown extraction strategy {descriptor.extraction_strategy!r} for {descriptor.name}"
        ) from None
    return cls(descriptor)
