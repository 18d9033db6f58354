"""
Inspect Schedule Dates
Shows the date buckets a plant table pages over, with row counts per date,
so page counts in the dashboard can be checked against the database.

Usage: python inspect_schedule_dates.py [wrap|production|shipping|service_orders]
"""

import sys
from collections import Counter

from plant_reports.api_client import SupabaseAPIClient, DashboardAPIError
from plant_reports.filters import FilterSpec
from plant_reports.grouped_pagination import (
    build_key_query,
    normalise_group_key,
    sort_group_keys,
    total_pages,
)
from plant_reports.report_formatters import format_group_label
from plant_reports.tables import get_table


def inspect_dates(table_name: str = "wrap"):
    """Fetch the date column only and print every bucket"""
    table = get_table(table_name)

    print("\n" + "=" * 80)
    print(f"DATE BUCKETS FOR {table.title.upper()} ({table.view})")
    print("=" * 80)

    client = SupabaseAPIClient()
    key_rows = build_key_query(client, table, FilterSpec()).execute_all()
    server_count = build_key_query(client, table, FilterSpec()).range(0, 0).execute(count=True).count

    counts = Counter(normalise_group_key(row.get(table.group_key)) for row in key_rows)
    keys = sort_group_keys(counts)

    print(f"\n✓ {len(key_rows)} rows across {len(keys)} dates\n")
    if server_count is not None and server_count != len(key_rows):
        print(f"✗ Server reports {server_count} rows; chunked fetch returned {len(key_rows)}\n")

    for i, key in enumerate(keys, 1):
        label, day_name = format_group_label(key)
        print(f"{i:3}. {str(key):<12} | {label:<12} {day_name:<10} | rows: {counts[key]}")

    print("\n" + "=" * 80)
    print(
        f"Pages at {table.default_page_size} dates per page: "
        f"{total_pages(len(keys), table.default_page_size)}"
    )
    print("=" * 80)


if __name__ == "__main__":
    try:
        inspect_dates(sys.argv[1] if len(sys.argv) > 1 else "wrap")
    except (ValueError, DashboardAPIError) as e:
        print(f"✗ {e}")
        sys.exit(1)
