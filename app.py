"""
Plant Schedule Reports - Streamlit App

Date-grouped plant schedules (wrap, production, shipping, service orders)
with printable PDF reports and Excel export.
"""

import os
import streamlit as st
import pandas as pd
from datetime import date
from plant_reports.api_client import SupabaseAPIClient, DashboardAPIError
from plant_reports.filters import FilterSpec, PageWindow, SortSpec, SHOW_PRIOR, get_week_range
from plant_reports.tables import TABLES, get_table
from plant_reports.grouped_pagination import fetch_grouped_page, fetch_all_rows
from plant_reports.report_formatters import (
    DEFAULT_ITEMS_PER_PAGE,
    count_unique_jobs,
    format_group_label,
    group_box_total,
    group_rows,
)
from plant_reports.pdf_generator import LAYOUTS, ReportGenerationError, generate_schedule_pdf
from plant_reports.excel_export import export_to_excel
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Page config
st.set_page_config(
    page_title="Plant Schedules",
    page_icon="📅",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS for styling
st.markdown("""
<style>
    .main-header {
        font-size: 2.2rem;
        color: #343a40;
        font-weight: bold;
    }
    .group-header {
        font-size: 1.1rem;
        color: #4A00E0;
        font-weight: bold;
    }
    .past-due {
        color: #d32f2f;
    }
</style>
""", unsafe_allow_html=True)

DISPLAY_COLUMNS = {
    'service_orders': ['service_order_number', 'job_number', 'client_name', 'shipping_street',
                       'shipping_city', 'pending_parts_count', 'due_date'],
    'default': ['job_number', 'client_name', 'shipping_street', 'shipping_city', 'cabinet_box',
                'cabinet_door_style', 'cabinet_species', 'cabinet_color', 'ship_schedule', 'wrap_completed'],
}


# =============================================================================
# SESSION STATE INITIALIZATION
# =============================================================================

if 'client' not in st.session_state:
    st.session_state.client = None

if 'page_index' not in st.session_state:
    st.session_state.page_index = 0

if 'query_key' not in st.session_state:
    st.session_state.query_key = None


def get_client() -> SupabaseAPIClient:
    if st.session_state.client is None:
        st.session_state.client = SupabaseAPIClient()
    return st.session_state.client


# =============================================================================
# SIDEBAR - TABLE & FILTERS
# =============================================================================

with st.sidebar:
    st.markdown('<p class="main-header">📅 Plant</p>', unsafe_allow_html=True)
    st.markdown("---")

    st.subheader("1. Schedule")
    table_name = st.selectbox(
        "View",
        options=list(TABLES.keys()),
        format_func=lambda name: TABLES[name].title
    )
    table = get_table(table_name)

    st.markdown("---")
    st.subheader("2. Filters")

    filters = FilterSpec.from_pairs({
        'job_number': st.text_input("Job #"),
        'client': st.text_input("Client"),
        'address': st.text_input("Address"),
    })

    if table.name == 'service_orders':
        filters = filters.with_filter('service_order_number', st.text_input("Service Order #"))

    range_id = next(
        (fid for fid, handler in table.filter_handlers.items()
         if handler.kind == "date_range" and not handler.select),
        None
    )
    use_range = st.checkbox("Limit to date range", value=False)
    if use_range and range_id:
        week_start, week_end = get_week_range()
        picked = st.date_input(
            "Date range",
            value=(date.fromisoformat(week_start), date.fromisoformat(week_end))
        )
        # date_input returns a single date while the user is mid-selection
        if isinstance(picked, (list, tuple)) and len(picked) == 2:
            filters = filters.with_filter(range_id, tuple(picked))

        if table.filter_handlers[range_id].honours_show_prior:
            filters = filters.with_filter(SHOW_PRIOR, st.checkbox(
                "Show prior (ignore start date)",
                value=False
            ) or None)

    st.markdown("---")
    st.subheader("3. Layout")

    sort_column = st.selectbox(
        "Sort rows by",
        options=["(date)"] + DISPLAY_COLUMNS.get(table.name, DISPLAY_COLUMNS['default'])
    )
    descending = st.checkbox("Descending", value=False)
    sort = None if sort_column == "(date)" else SortSpec(sort_column, descending)

    page_size = st.number_input(
        "Dates per page",
        min_value=1,
        max_value=60,
        value=table.default_page_size
    )
    items_per_page = st.number_input(
        "Rows per printed page",
        min_value=5,
        max_value=60,
        value=int(os.getenv("REPORT_ITEMS_PER_PAGE", DEFAULT_ITEMS_PER_PAGE))
    )

    st.markdown("---")
    if st.button("🔄 Reload", type="primary", use_container_width=True):
        st.session_state.client = None

# New table, filters or sort start again from the first page
query_key = (table.name, filters, sort, int(page_size))
if st.session_state.query_key != query_key:
    st.session_state.query_key = query_key
    st.session_state.page_index = 0


# =============================================================================
# MAIN CONTENT AREA
# =============================================================================

st.markdown(f'<p class="main-header">{table.title}</p>', unsafe_allow_html=True)

try:
    client = get_client()
    page = PageWindow(st.session_state.page_index, int(page_size))
    with st.spinner(f"Loading {table.title.lower()}..."):
        result = fetch_grouped_page(client, table, filters, sort, page)
except ValueError as e:
    st.error(f"Configuration error: {e}")
    st.stop()
except DashboardAPIError as e:
    st.error(f"Failed to load: {e}")
    logger.exception("Error loading schedule")
    st.stop()

page_total = result.page_count(page.page_size)

tab1, tab2, tab3 = st.tabs(["📋 Schedule", "📄 Print PDF", "💾 Export Excel"])

# TAB 1: SCHEDULE
with tab1:
    col1, col2, col3 = st.columns([1, 2, 1])
    with col1:
        if st.button("◀ Previous", disabled=page.page_index == 0):
            st.session_state.page_index = page.previous().page_index
            st.rerun()
    with col2:
        st.markdown(
            f"**Page {page.page_index + 1 if page_total else 0} of {page_total}** "
            f"· {result.total_groups} dates"
        )
    with col3:
        if st.button("Next ▶", disabled=page.page_index + 1 >= page_total):
            st.session_state.page_index = page.next().page_index
            st.rerun()

    if not result.rows:
        st.info("No rows match the current filters.")
    else:
        layout = LAYOUTS[table.name]
        columns = DISPLAY_COLUMNS.get(table.name, DISPLAY_COLUMNS['default'])
        if table.name == 'service_orders':
            total_field, total_label = 'pending_parts_count', 'Parts'
        else:
            total_field, total_label = 'cabinet_box', 'Boxes'

        for key, group in group_rows(result.rows, table.group_key).items():
            label, day_name = format_group_label(key)
            jobs = count_unique_jobs(group)
            total = group_box_total(group, total_field)
            title = f"{layout.group_heading}: {label} {day_name} · {jobs} Jobs · {total} {total_label}"
            with st.expander(title, expanded=True):
                df = pd.DataFrame(group)
                st.dataframe(
                    df[[c for c in columns if c in df.columns]],
                    use_container_width=True,
                    hide_index=True
                )

# TAB 2: PDF
with tab2:
    st.markdown("### Printable Report")
    st.write("Prints every date matching the current filters, not just this page.")

    if st.button("📄 Build PDF", type="primary"):
        try:
            with st.spinner("Rendering PDF..."):
                all_rows = fetch_all_rows(client, table, filters, sort)
                subtitle = ""
                if range_id and filters.get(range_id):
                    start, end = filters.get(range_id)
                    subtitle = f"Range: {start or '?'} - {end or '?'}"
                pdf_buffer = generate_schedule_pdf(
                    all_rows,
                    LAYOUTS[table.name],
                    subtitle=subtitle,
                    items_per_page=int(items_per_page)
                )
            st.download_button(
                "📥 Download PDF",
                pdf_buffer.getvalue(),
                f"{table.name}_schedule_{date.today().isoformat()}.pdf",
                "application/pdf"
            )
        except DashboardAPIError as e:
            st.error(f"Failed to load: {e}")
        except ReportGenerationError as e:
            st.error(f"PDF error: {e}")
            logger.exception("Error generating PDF")

# TAB 3: EXCEL
with tab3:
    st.markdown("### Spreadsheet Export")

    if st.button("💾 Build Excel file"):
        try:
            with st.spinner("Exporting..."):
                all_rows = fetch_all_rows(client, table, filters, sort)
                export_columns = {
                    c: c.replace('_', ' ').title()
                    for c in DISPLAY_COLUMNS.get(table.name, DISPLAY_COLUMNS['default'])
                }
                buffer, file_name = export_to_excel(all_rows, f"{table.name}_schedule", export_columns)
            st.download_button(
                "📥 Download Excel",
                buffer.getvalue(),
                file_name,
                "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
            )
        except DashboardAPIError as e:
            st.error(f"Failed to load: {e}")


# =============================================================================
# FOOTER
# =============================================================================

st.markdown("---")
st.markdown("""
<div style='text-align: center; color: #666;'>
    <small>Plant Schedule Reports | Built with Streamlit</small>
</div>
""", unsafe_allow_html=True)
