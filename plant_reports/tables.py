"""
Plant Table Definitions

One TableConfig per plant schedule view: which column buckets rows into
pages, which predicates are always applied, how each UI filter id maps onto
the view, and the column that keeps ordering stable inside a date.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from plant_reports.filters import FilterHandler, date_range, ilike, ilike_any


@dataclass(frozen=True)
class TableConfig:
    name: str
    view: str
    group_key: str
    title: str
    base_filters: Callable = lambda query: query
    filter_handlers: Dict[str, FilterHandler] = field(default_factory=dict)
    tiebreak: Optional[str] = None
    default_page_size: int = 5


def _not_shipped(query):
    return query.not_("has_shipped", "is", True)


def _not_shipped_with_wrap_date(query):
    return query.not_("has_shipped", "is", True).not_("wrap_date", "is", None)


def _pending_parts(query):
    return query.gt("pending_parts_count", 0)


JOB_FILTERS = {
    "job_number": ilike("job_number"),
    "client": ilike("client_name"),
    "address": ilike_any("shipping_street", "shipping_city"),
}


WRAP_SCHEDULE = TableConfig(
    name="wrap",
    view="plant_wrap_view",
    group_key="wrap_date",
    title="Wrap Schedule",
    base_filters=_not_shipped,
    filter_handlers={
        **JOB_FILTERS,
        "wrap_date_range": date_range("wrap_date", honours_show_prior=True),
    },
    tiebreak="job_number",
)

PRODUCTION_SCHEDULE = TableConfig(
    name="production",
    view="plant_production_view",
    group_key="wrap_date",
    title="Production Schedule",
    base_filters=_not_shipped_with_wrap_date,
    filter_handlers={
        **JOB_FILTERS,
        "wrap_date_range": date_range("wrap_date", honours_show_prior=True),
    },
    tiebreak="job_number",
)

SHIPPING_SCHEDULE = TableConfig(
    name="shipping",
    view="plant_shipping_view",
    group_key="ship_schedule",
    title="Shipping Schedule",
    base_filters=_not_shipped,
    filter_handlers={
        **JOB_FILTERS,
        "ship_date_range": date_range("ship_schedule", honours_show_prior=True),
    },
    tiebreak="job_number",
)

PLANT_SERVICE_ORDERS = TableConfig(
    name="service_orders",
    view="plant_service_orders_view",
    group_key="due_date",
    title="Plant Service Orders",
    base_filters=_pending_parts,
    filter_handlers={
        "service_order_number": ilike("service_order_number"),
        "job_number": ilike("job_number"),
        "client": ilike("client_name"),
        "address": ilike_any("shipping_street", "shipping_city", "shipping_province"),
        "service_date_range": date_range("due_date"),
        "part_due_date_range": date_range(
            "service_order_parts.part_due_date",
            select="service_order_parts!inner(part_due_date)",
        ),
    },
    tiebreak="service_order_number",
)

TABLES = {
    t.name: t
    for t in (WRAP_SCHEDULE, PRODUCTION_SCHEDULE, SHIPPING_SCHEDULE, PLANT_SERVICE_ORDERS)
}


def get_table(name: str) -> TableConfig:
    try:
        return TABLES[name]
    except KeyError:
        raise ValueError(f"Unknown table '{name}'. Choose from: {', '.join(sorted(TABLES))}")
