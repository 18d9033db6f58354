"""
Table Filter Helpers

Request parameter objects (filters, sorting, page window) and the code that
turns a filter set into PostgREST predicates. The same filter set is applied
to every query issued for one table request, so the date-key discovery query
and the row query always see identical predicates.
"""

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import logging

logger = logging.getLogger(__name__)

# Companion flag: when truthy, date-range handlers that honour it drop their lower bound
SHOW_PRIOR = "show_prior"

DateLike = Union[str, date, datetime, None]


# =============================================================================
# DATE HELPERS
# =============================================================================

def to_iso_date(value: DateLike) -> Optional[str]:
    """
    Format a date-ish value as YYYY-MM-DD.

    Accepts date/datetime objects and ISO strings with or without a time part.

    Example:
        >>> to_iso_date("2024-03-05T14:00:00Z")
        '2024-03-05'
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d')
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    try:
        if 'T' in text:
            return datetime.fromisoformat(text.replace('Z', '+00:00')).strftime('%Y-%m-%d')
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        raise ValueError(f"Not a date: {value!r}")


def get_week_range(anchor: Optional[date] = None) -> Tuple[str, str]:
    """
    Monday..Sunday of the week containing `anchor` (default: today).

    Returns:
        Tuple of (start_date, end_date) as ISO strings
    """
    anchor = anchor or date.today()
    start = anchor - timedelta(days=anchor.weekday())
    return start.isoformat(), (start + timedelta(days=6)).isoformat()


# =============================================================================
# REQUEST PARAMETER OBJECTS
# =============================================================================

def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        if len(value) == 2:
            return all(_is_empty(v) for v in value)
        return len(value) == 0
    return False


def _normalise(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return tuple(value)
    return value


@dataclass(frozen=True)
class ColumnFilter:
    id: str
    value: Any


@dataclass(frozen=True)
class FilterSpec:
    """
    Ordered conjunction of column filters.

    Empty values (None, blank strings, empty lists, ranges with no ends) are
    not constraints and are dropped on construction.
    """

    filters: Tuple[ColumnFilter, ...] = ()

    @classmethod
    def from_pairs(cls, pairs: Union[Dict[str, Any], Iterable[Tuple[str, Any]], None] = None) -> "FilterSpec":
        if pairs is None:
            return cls()
        items = pairs.items() if isinstance(pairs, dict) else pairs
        kept: Dict[str, ColumnFilter] = {}
        for filter_id, value in items:
            if _is_empty(value):
                kept.pop(filter_id, None)
                continue
            kept[filter_id] = ColumnFilter(filter_id, _normalise(value))
        return cls(tuple(kept.values()))

    def __iter__(self):
        return iter(self.filters)

    def __len__(self):
        return len(self.filters)

    def get(self, filter_id: str, default: Any = None) -> Any:
        for f in self.filters:
            if f.id == filter_id:
                return f.value
        return default

    def with_filter(self, filter_id: str, value: Any) -> "FilterSpec":
        pairs = [(f.id, f.value) for f in self.filters if f.id != filter_id]
        pairs.append((filter_id, value))
        return FilterSpec.from_pairs(pairs)


@dataclass(frozen=True)
class SortSpec:
    field: str
    descending: bool = False


@dataclass(frozen=True)
class PageWindow:
    """Zero-based page index and page size, counted in date groups"""

    page_index: int = 0
    page_size: int = 10

    def __post_init__(self):
        if self.page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {self.page_index}")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {self.page_size}")

    @property
    def start(self) -> int:
        return self.page_index * self.page_size

    @property
    def stop(self) -> int:
        return self.start + self.page_size

    def next(self) -> "PageWindow":
        return replace(self, page_index=self.page_index + 1)

    def previous(self) -> "PageWindow":
        return replace(self, page_index=max(0, self.page_index - 1))


# =============================================================================
# FILTER HANDLERS
# =============================================================================

@dataclass(frozen=True)
class FilterHandler:
    """
    How one filter id becomes predicates on a query.

    kind:
        ilike      substring match on columns[0]
        ilike_any  substring match on any of columns (OR)
        eq         exact match on columns[0]
        date_range inclusive range on columns[0], either end optional
    select:
        Extra select fragment the filter needs (an inner-joined embed), added
        to every query while the filter is active.
    """

    kind: str
    columns: Tuple[str, ...]
    select: Optional[str] = None
    honours_show_prior: bool = False

    def apply(self, query, value: Any, show_prior: bool = False):
        column = self.columns[0]

        if self.kind == "ilike":
            return query.ilike(column, f"%{value}%")

        if self.kind == "ilike_any":
            return query.or_(*[(c, "ilike", f"%{value}%") for c in self.columns])

        if self.kind == "eq":
            return query.eq(column, value)

        if self.kind == "date_range":
            if not isinstance(value, (tuple, list)) or len(value) != 2:
                logger.debug(f"Ignoring malformed date range for {column}: {value!r}")
                return query
            start, end = value
            if start and not (show_prior and self.honours_show_prior):
                query = query.gte(column, to_iso_date(start))
            if end:
                query = query.lte(column, to_iso_date(end))
            return query

        raise ValueError(f"Unknown filter kind: {self.kind}")


def ilike(column: str) -> FilterHandler:
    return FilterHandler("ilike", (column,))


def ilike_any(*columns: str) -> FilterHandler:
    return FilterHandler("ilike_any", tuple(columns))


def exact(column: str) -> FilterHandler:
    return FilterHandler("eq", (column,))


def date_range(column: str, select: Optional[str] = None, honours_show_prior: bool = False) -> FilterHandler:
    return FilterHandler("date_range", (column,), select=select, honours_show_prior=honours_show_prior)


def apply_filters(query, filters: FilterSpec, handlers: Dict[str, FilterHandler]):
    """
    Apply every filter in `filters` to `query` using the table's handlers.

    Unknown ids are skipped; the show_prior flag is consumed by date ranges
    and never becomes a predicate of its own.
    """
    show_prior = bool(filters.get(SHOW_PRIOR))

    for f in filters:
        if f.id == SHOW_PRIOR:
            continue
        handler = handlers.get(f.id)
        if handler is None:
            logger.debug(f"No handler for filter '{f.id}', skipping")
            continue
        query = handler.apply(query, f.value, show_prior)

    return query


def required_selects(filters: FilterSpec, handlers: Dict[str, FilterHandler]) -> List[str]:
    """Select fragments needed to evaluate the active filters"""
    fragments = []
    for f in filters:
        handler = handlers.get(f.id)
        if handler and handler.select and handler.select not in fragments:
            fragments.append(handler.select)
    return fragments
