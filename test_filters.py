"""
Tests for filter specs, page windows and filter handlers
"""

from datetime import date, datetime

import pytest

from plant_reports.filters import (
    SHOW_PRIOR,
    FilterHandler,
    FilterSpec,
    PageWindow,
    apply_filters,
    date_range,
    exact,
    get_week_range,
    ilike,
    ilike_any,
    required_selects,
    to_iso_date,
)
from plant_reports.tables import PLANT_SERVICE_ORDERS, TABLES, get_table


class RecordingQuery:
    """Collects builder calls in order"""

    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        def method(*args):
            self.calls.append((name,) + args)
            return self
        return method


# =============================================================================
# DATE HELPERS
# =============================================================================

def test_to_iso_date():
    assert to_iso_date(None) is None
    assert to_iso_date("") is None
    assert to_iso_date(date(2024, 3, 5)) == "2024-03-05"
    assert to_iso_date(datetime(2024, 3, 5, 23, 59)) == "2024-03-05"
    assert to_iso_date("2024-03-05T14:00:00Z") == "2024-03-05"
    assert to_iso_date(" 2024-03-05 ") == "2024-03-05"
    with pytest.raises(ValueError):
        to_iso_date("next week")


def test_week_range_runs_monday_to_sunday():
    assert get_week_range(date(2024, 1, 10)) == ("2024-01-08", "2024-01-14")


# =============================================================================
# FILTER SPEC
# =============================================================================

def test_from_pairs_drops_empty_values():
    spec = FilterSpec.from_pairs({
        "job_number": " 1234 ",
        "client": "",
        "address": None,
        "wrap_date_range": (None, ""),
        "ship_date_range": [None, "2024-01-31"],
    })

    assert [f.id for f in spec] == ["job_number", "ship_date_range"]
    assert spec.get("job_number") == "1234"
    assert spec.get("ship_date_range") == (None, "2024-01-31")
    assert spec.get("client", "none") == "none"


def test_from_pairs_later_value_wins():
    spec = FilterSpec.from_pairs([("client", "a"), ("client", "b"), ("job_number", "1")])
    assert spec.get("client") == "b"
    assert len(spec) == 2


def test_with_filter_returns_new_specs():
    spec = FilterSpec.from_pairs({"client": "smith"})
    widened = spec.with_filter("job_number", "12")
    cleared = widened.with_filter("client", "  ")

    assert spec.get("job_number") is None
    assert widened.get("job_number") == "12"
    assert cleared.get("client") is None


def test_filter_specs_are_hashable_and_comparable():
    a = FilterSpec.from_pairs({"client": "smith"})
    b = FilterSpec.from_pairs({"client": "smith "})
    assert a == b
    assert hash(a) == hash(b)


# =============================================================================
# PAGE WINDOW
# =============================================================================

def test_page_window_bounds():
    window = PageWindow(2, 5)
    assert (window.start, window.stop) == (10, 15)
    assert window.next() == PageWindow(3, 5)
    assert PageWindow(0, 5).previous() == PageWindow(0, 5)


@pytest.mark.parametrize("index, size", [(-1, 5), (0, 0), (0, -3)])
def test_page_window_rejects_invalid_values(index, size):
    with pytest.raises(ValueError):
        PageWindow(index, size)


# =============================================================================
# HANDLERS
# =============================================================================

def test_text_handlers():
    query = RecordingQuery()
    ilike("job_number").apply(query, "12")
    exact("client_name").apply(query, "Smith")
    ilike_any("shipping_street", "shipping_city").apply(query, "main")

    assert query.calls == [
        ("ilike", "job_number", "%12%"),
        ("eq", "client_name", "Smith"),
        ("or_", ("shipping_street", "ilike", "%main%"), ("shipping_city", "ilike", "%main%")),
    ]


def test_date_range_bounds_are_optional():
    handler = date_range("wrap_date")

    query = handler.apply(RecordingQuery(), (date(2024, 1, 1), None))
    assert query.calls == [("gte", "wrap_date", "2024-01-01")]

    query = handler.apply(RecordingQuery(), (None, "2024-01-31T10:00:00"))
    assert query.calls == [("lte", "wrap_date", "2024-01-31")]


def test_show_prior_only_affects_handlers_that_honour_it():
    honouring = date_range("wrap_date", honours_show_prior=True)
    plain = date_range("due_date")

    query = honouring.apply(RecordingQuery(), ("2024-01-01", "2024-01-31"), show_prior=True)
    assert query.calls == [("lte", "wrap_date", "2024-01-31")]

    query = plain.apply(RecordingQuery(), ("2024-01-01", "2024-01-31"), show_prior=True)
    assert query.calls == [("gte", "due_date", "2024-01-01"), ("lte", "due_date", "2024-01-31")]


def test_malformed_date_range_is_ignored():
    query = date_range("wrap_date").apply(RecordingQuery(), "2024-01-01")
    assert query.calls == []


def test_unknown_handler_kind():
    with pytest.raises(ValueError):
        FilterHandler("fuzzy", ("client_name",)).apply(RecordingQuery(), "x")


def test_apply_filters_skips_unknown_ids_and_flag():
    handlers = {
        "client": ilike("client_name"),
        "wrap_date_range": date_range("wrap_date", honours_show_prior=True),
    }
    filters = FilterSpec.from_pairs({
        "client": "smith",
        "colour": "red",
        "wrap_date_range": ("2024-01-01", "2024-01-31"),
        SHOW_PRIOR: True,
    })
    query = apply_filters(RecordingQuery(), filters, handlers)

    assert query.calls == [
        ("ilike", "client_name", "%smith%"),
        ("lte", "wrap_date", "2024-01-31"),
    ]


def test_required_selects_only_for_active_filters():
    handlers = PLANT_SERVICE_ORDERS.filter_handlers
    assert required_selects(FilterSpec.from_pairs({"client": "x"}), handlers) == []
    assert required_selects(
        FilterSpec.from_pairs({"part_due_date_range": ("2024-01-01", None)}), handlers
    ) == ["service_order_parts!inner(part_due_date)"]


# =============================================================================
# TABLES
# =============================================================================

def test_table_registry():
    assert set(TABLES) == {"wrap", "production", "shipping", "service_orders"}
    assert get_table("shipping").group_key == "ship_schedule"
    with pytest.raises(ValueError, match="Unknown table"):
        get_table("paint")


def test_base_filters_exclude_shipped_jobs():
    query = get_table("production").base_filters(RecordingQuery())
    assert query.calls == [
        ("not_", "has_shipped", "is", True),
        ("not_", "wrap_date", "is", None),
    ]
