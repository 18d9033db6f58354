"""
Report Formatting Module

Turns fetched plant view rows into printable structure:

- reshaping flat view rows into the nested job layout the reports read
- grouping rows by schedule date (same bucket order as table pagination)
- splitting the grouped output into fixed-capacity print pages with column
  headers repeated on every continued page and per-date box totals

Nothing here talks to the database or to the PDF engine.
"""

import math
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from plant_reports.grouped_pagination import NO_DATE, normalise_group_key, sort_group_keys

logger = logging.getLogger(__name__)

# Rows per printed page on the job status layout
DEFAULT_ITEMS_PER_PAGE = 24
UNSCHEDULED_LABEL = "Unscheduled"
NO_DATA_MESSAGE = "No data found for the selected filters."

KeyFunc = Union[str, Callable[[Dict[str, Any]], Any]]


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def parse_quantity(value: Any) -> int:
    """
    Parse a box/part quantity leniently.

    Numbers and numeric strings are truncated to int; anything unparsable
    (None, blanks, "n/a", NaN) counts as 0 so a report always renders.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number)


def get_field(row: Dict[str, Any], key: KeyFunc) -> Any:
    """Read a field by name, dotted path into nested dicts, or callable"""
    if callable(key):
        return key(row)
    value: Any = row
    for part in key.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def group_rows(rows: List[Dict[str, Any]], key: KeyFunc) -> "OrderedDict[Any, List[Dict[str, Any]]]":
    """
    Bucket rows by normalised group key, keeping first-seen order in each bucket.

    Buckets themselves come back sentinel-last, others ascending.
    """
    buckets: Dict[Any, List[Dict[str, Any]]] = {}
    for row in rows:
        buckets.setdefault(normalise_group_key(get_field(row, key)), []).append(row)
    return OrderedDict((k, buckets[k]) for k in sort_group_keys(buckets))


def group_box_total(rows: List[Dict[str, Any]], field_name: KeyFunc) -> int:
    return sum(parse_quantity(get_field(row, field_name)) for row in rows)


def count_unique_jobs(rows: List[Dict[str, Any]], job_field: KeyFunc = "job_number") -> int:
    """Distinct base job numbers; 1234-A and 1234-B are the same job"""
    jobs = set()
    for row in rows:
        value = get_field(row, job_field)
        if value in (None, ""):
            continue
        jobs.add(str(value).split('-')[0].strip())
    return len(jobs)


def format_group_label(key: Any, date_format: str = "%d-%b-%y") -> tuple:
    """
    Heading text for a group: ("05-Jan-24", "Friday"), or ("Unscheduled", "").

    Keys that are not dates are shown as-is with no weekday.
    """
    if key == NO_DATE:
        return UNSCHEDULED_LABEL, ""
    try:
        day = date.fromisoformat(str(key))
    except ValueError:
        return str(key), ""
    return day.strftime(date_format), day.strftime("%A")


# =============================================================================
# REPORT BLOCKS
# =============================================================================

@dataclass
class GroupHeaderBlock:
    group_key: Any
    label: str
    day_name: str = ""
    kind: str = "group_header"


@dataclass
class ColumnHeaderBlock:
    group_key: Any
    continued: bool = False
    kind: str = "column_header"


@dataclass
class RowBlock:
    group_key: Any
    row: Dict[str, Any]
    kind: str = "row"


@dataclass
class GroupFooterBlock:
    group_key: Any
    total: int
    row_count: int
    job_count: Optional[int] = None
    kind: str = "group_footer"


@dataclass
class NoDataBlock:
    message: str = NO_DATA_MESSAGE
    kind: str = "no_data"


@dataclass
class ReportPage:
    number: int
    blocks: List[Any] = field(default_factory=list)

    @property
    def row_blocks(self) -> List[RowBlock]:
        return [b for b in self.blocks if isinstance(b, RowBlock)]

    @property
    def is_no_data(self) -> bool:
        return any(isinstance(b, NoDataBlock) for b in self.blocks)


# =============================================================================
# PRINT PAGINATION
# =============================================================================

def paginate_for_print(
    rows: List[Dict[str, Any]],
    items_per_page: int = DEFAULT_ITEMS_PER_PAGE,
    group_key: KeyFunc = "ship_schedule",
    total_field: Optional[KeyFunc] = None,
    job_field: Optional[KeyFunc] = None,
    date_format: str = "%d-%b-%y",
    no_data_message: str = NO_DATA_MESSAGE
) -> List[ReportPage]:
    """
    Group rows by date and split them into print pages.

    Only row blocks count against `items_per_page`. A group never starts on a
    page that is already full, and a group that runs over a page break gets
    its column header repeated at the top of the next page. Rows are atomic.

    Args:
        rows: Rows as fetched (any order)
        items_per_page: Maximum row blocks per page
        group_key: Field name, dotted path or callable giving each row's date
        total_field: Field summed into each group's footer; no footer if None
        job_field: Field whose distinct base values are counted in the footer
        date_format: strftime format for group headings

    Returns:
        Pages in print order; a single NoDataBlock page when `rows` is empty
    """
    if items_per_page < 1:
        raise ValueError(f"items_per_page must be >= 1, got {items_per_page}")

    if not rows:
        return [ReportPage(number=1, blocks=[NoDataBlock(no_data_message)])]

    groups = group_rows(rows, group_key)
    pages: List[ReportPage] = []
    current: List[Any] = []
    count = 0

    def start_new_page():
        nonlocal current, count
        pages.append(ReportPage(number=len(pages) + 1, blocks=current))
        current = []
        count = 0

    for key, group in groups.items():
        if count >= items_per_page:
            start_new_page()

        label, day_name = format_group_label(key, date_format)
        current.append(GroupHeaderBlock(key, label, day_name))
        current.append(ColumnHeaderBlock(key))

        for row in group:
            if count >= items_per_page:
                start_new_page()
                current.append(ColumnHeaderBlock(key, continued=True))
            current.append(RowBlock(key, row))
            count += 1

        if total_field is not None:
            current.append(GroupFooterBlock(
                group_key=key,
                total=group_box_total(group, total_field),
                row_count=len(group),
                job_count=count_unique_jobs(group, job_field) if job_field else None,
            ))

    if current:
        pages.append(ReportPage(number=len(pages) + 1, blocks=current))

    logger.info(f"Paginated {len(rows)} rows into {len(groups)} groups across {len(pages)} pages")
    return pages


# =============================================================================
# ROW FORMATTERS
# =============================================================================

def _row_id(item: Dict[str, Any], index: int) -> Any:
    """job_id, then installation_id, then the row's position in its input list"""
    return item.get('job_id') or item.get('installation_id') or f"row-{index}"


def _sales_order(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'shipping_client_name': item.get('client_name'),
        'shipping_city': item.get('shipping_city') or "",
        'shipping_street': item.get('shipping_street') or "",
        'shipping_province': item.get('shipping_province') or "",
        'cabinet': {
            'box': item.get('cabinet_box') or "0",
            'door_styles': {'name': item.get('cabinet_door_style') or ""},
            'species': {'Species': item.get('cabinet_species') or ""},
            'colors': {'Name': item.get('cabinet_color') or ""},
        },
    }


def _plant_job(item: Dict[str, Any], index: int) -> Dict[str, Any]:
    return {
        **item,
        'id': _row_id(item, index),
        'is_canopy_required': item.get('is_canopy_required'),
        'is_woodtop_required': item.get('is_woodtop_required'),
        'is_custom_cab_required': item.get('is_custom_cab_required'),
        'sales_orders': _sales_order(item),
        'production_schedule': {
            'placement_date': item.get('placement_date'),
            'ship_schedule': item.get('ship_schedule') or "",
            'doors_completed_actual': item.get('doors_completed_actual'),
            'panel_completed_actual': item.get('panel_completed_actual'),
            'custom_finish_completed_actual': item.get('custom_finish_completed_actual'),
            'paint_doors_completed_actual': item.get('paint_doors_completed_actual'),
            'paint_canopy_completed_actual': item.get('paint_canopy_completed_actual'),
            'paint_cust_cab_completed_actual': item.get('paint_cust_cab_completed_actual'),
            'assembly_completed_actual': item.get('assembly_completed_actual'),
        },
        'installation': {
            'wrap_date': item.get('wrap_date'),
            'wrap_completed': item.get('wrap_completed'),
        },
    }


def format_wrap_schedule_data(data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reshape plant_wrap_view rows into nested wrap schedule jobs"""
    return [_plant_job(item, index) for index, item in enumerate(data)]


def format_production_schedule_data(data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Reshape plant_production_view rows into nested production jobs"""
    return [_plant_job(item, index) for index, item in enumerate(data)]


def format_ship_schedule_data(data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Reshape plant_shipping_view rows into nested shipping jobs.

    Jobs that have already shipped are dropped.
    """
    jobs = []
    for index, item in enumerate(data):
        if item.get('has_shipped'):
            continue
        jobs.append({
            **item,
            'id': _row_id(item, index),
            'sales_orders': _sales_order(item),
            'production_schedule': {
                'placement_date': item.get('placement_date'),
                'ship_schedule': item.get('ship_schedule') or "",
                'ship_status': item.get('ship_status') or "",
            },
            'installation': {
                'notes': item.get('installation_notes'),
                'wrap_completed': item.get('wrap_completed'),
                'in_warehouse': item.get('in_warehouse'),
                'partially_shipped': item.get('partially_shipped'),
            },
            'warehouse_tracking': {
                'pickup_date': item.get('pickup_date'),
                'dropoff_date': item.get('dropoff_date'),
            },
        })
    return jobs
