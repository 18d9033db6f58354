"""
Date-Bucketed Pagination Module

Pages plant schedule views by distinct schedule date instead of by raw row:
one page holds N dates and every job on those dates. PostgREST has no
"paginate by distinct key" primitive, so each page is two queries:

1. fetch only the date column under the current filters and derive the
   ordered set of distinct dates,
2. fetch full rows for the dates that fall inside the page window.

Both queries are built by the same helper from the same FilterSpec, so a
filter on the date column itself always narrows both phases identically.
"""

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional
import logging

from plant_reports.api_client import DashboardAPIError
from plant_reports.filters import FilterSpec, PageWindow, SortSpec, apply_filters, required_selects, to_iso_date
from plant_reports.tables import TableConfig

logger = logging.getLogger(__name__)

# Bucket for rows without a date; always ordered after every real date
NO_DATE = "No Date"


@dataclass
class GroupedPage:
    rows: List[Dict[str, Any]]
    total_groups: int
    group_keys: List[Any] = field(default_factory=list)

    def page_count(self, page_size: int) -> int:
        return total_pages(self.total_groups, page_size)


# =============================================================================
# GROUP KEYS
# =============================================================================

def normalise_group_key(value: Any) -> Any:
    """
    Map a raw column value onto its bucket.

    None, blanks and NaN become NO_DATE; dates, datetimes and ISO date strings
    become YYYY-MM-DD; anything else is returned unchanged.
    """
    if value is None:
        return NO_DATE
    if isinstance(value, float) and math.isnan(value):
        return NO_DATE
    if isinstance(value, (date, datetime)):
        return to_iso_date(value)
    if isinstance(value, str):
        text = value.strip()
        if not text or text == NO_DATE:
            return NO_DATE
        try:
            return to_iso_date(text)
        except ValueError:
            return text
    return value


def group_sort_key(key: Any):
    """Sentinel last, text keys ascending, then any other types by their text"""
    if key == NO_DATE:
        return (1, 0, "")
    if isinstance(key, str):
        return (0, 0, key)
    return (0, 1, str(key))


def sort_group_keys(keys) -> List[Any]:
    return sorted(keys, key=group_sort_key)


def raw_values_by_key(rows: List[Dict[str, Any]], column: str) -> Dict[Any, List[Any]]:
    """
    Stored values behind each bucket, first-seen order, no duplicates.

    A timestamp column buckets many distinct values under one date; the row
    query has to match those stored values, not the bucket label.
    """
    raw: Dict[Any, List[Any]] = {}
    for row in rows:
        value = row.get(column)
        bucket = raw.setdefault(normalise_group_key(value), [])
        if value not in bucket:
            bucket.append(value)
    return raw


def total_pages(total_groups: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0, got {page_size}")
    return math.ceil(total_groups / page_size)


# =============================================================================
# QUERY CONSTRUCTION
# =============================================================================

def build_scoped_query(client, table: TableConfig, filters: FilterSpec, columns: str):
    """
    Start a query on the table's view with its base predicates and `filters`.

    Every query issued for one table request goes through here.
    """
    select = [columns] + required_selects(filters, table.filter_handlers)
    query = client.table(table.view).select(", ".join(select))
    query = table.base_filters(query)
    return apply_filters(query, filters, table.filter_handlers)


def build_key_query(client, table: TableConfig, filters: FilterSpec):
    """
    Group-column-only query for key discovery.

    Ordered by the group column and tiebreak so the chunked range requests
    of execute_all see one stable row order and never skip or repeat rows.
    """
    query = build_scoped_query(client, table, filters, table.group_key)
    return apply_ordering(query, table, None)


def restrict_to_keys(query, column: str, raw_values: List[Any]):
    """
    Limit `query` to rows whose `column` holds one of `raw_values`.

    PostgREST's `in` cannot match NULL, so a None among the values turns into
    an explicit `is.null` branch OR-ed with the remaining values.
    """
    values = [v for v in raw_values if v is not None]
    wants_null = len(values) != len(raw_values)

    if wants_null and values:
        return query.or_((column, "in", values), (column, "is", None))
    if wants_null:
        return query.is_(column, None)
    return query.in_(column, values)


def apply_ordering(query, table: TableConfig, sort: Optional[SortSpec]):
    if sort is not None:
        query = query.order(sort.field, ascending=not sort.descending)
        primary = sort.field
    else:
        query = query.order(table.group_key, ascending=True)
        primary = table.group_key

    if table.tiebreak and table.tiebreak != primary:
        query = query.order(table.tiebreak, ascending=True)
    return query


# =============================================================================
# PUBLIC OPERATIONS
# =============================================================================

def fetch_grouped_page(
    client,
    table: TableConfig,
    filters: Optional[FilterSpec] = None,
    sort: Optional[SortSpec] = None,
    page: Optional[PageWindow] = None
) -> GroupedPage:
    """
    Fetch one page of a plant table where the unit of pagination is a date.

    Args:
        client: Anything with a `table(view)` method returning a QueryBuilder
        table: TableConfig of the view to page
        filters: Column filters, applied to both phases
        sort: Optional single-column sort for the row query
        page: Window over the ordered distinct dates

    Returns:
        GroupedPage with the rows for the dates in the window and the total
        number of distinct dates under `filters`

    Raises:
        DashboardAPIError: If either query fails; no partial page is returned
    """
    filters = filters or FilterSpec()
    page = page or PageWindow(0, table.default_page_size)

    try:
        key_rows = build_key_query(client, table, filters).execute_all()
    except DashboardAPIError as e:
        raise DashboardAPIError(f"Failed to load {table.title} dates: {e}") from e

    raw_by_key = raw_values_by_key(key_rows, table.group_key)
    unique_keys = sort_group_keys(raw_by_key)
    target_keys = unique_keys[page.start:page.stop]

    logger.info(
        f"{table.title}: {len(unique_keys)} dates, page {page.page_index} "
        f"covers {len(target_keys)}"
    )

    if not target_keys:
        return GroupedPage(rows=[], total_groups=len(unique_keys), group_keys=[])

    query = build_scoped_query(client, table, filters, "*")
    query = restrict_to_keys(
        query, table.group_key, [raw for key in target_keys for raw in raw_by_key[key]]
    )
    query = apply_ordering(query, table, sort)

    try:
        rows = query.execute_all()
    except DashboardAPIError as e:
        raise DashboardAPIError(f"Failed to load {table.title} rows: {e}") from e

    return GroupedPage(rows=rows, total_groups=len(unique_keys), group_keys=target_keys)


def fetch_all_rows(
    client,
    table: TableConfig,
    filters: Optional[FilterSpec] = None,
    sort: Optional[SortSpec] = None
) -> List[Dict[str, Any]]:
    """Every row under `filters`, for printing or exporting the whole schedule"""
    filters = filters or FilterSpec()
    query = apply_ordering(build_scoped_query(client, table, filters, "*"), table, sort)
    return query.execute_all()
