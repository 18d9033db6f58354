"""
PDF Generator Module

Renders paginated plant schedule reports to PDF.
Uses xhtml2pdf for HTML/CSS to PDF conversion; pagination is decided
beforehand by report_formatters.paginate_for_print, one <div> per page.
"""

from dataclasses import dataclass
from datetime import date, datetime
from html import escape
from io import BytesIO
from typing import Any, Dict, List, Optional
import logging
from xhtml2pdf import pisa

from plant_reports.report_formatters import (
    ColumnHeaderBlock,
    DEFAULT_ITEMS_PER_PAGE,
    GroupFooterBlock,
    GroupHeaderBlock,
    KeyFunc,
    NoDataBlock,
    ReportPage,
    RowBlock,
    format_production_schedule_data,
    format_ship_schedule_data,
    format_wrap_schedule_data,
    get_field,
    paginate_for_print,
)

logger = logging.getLogger(__name__)

# Dashboard theme colors
COLOR_VIOLET = "#4A00E0"     # Report titles
COLOR_TITLE_GREY = "#343a40" # Body text
COLOR_HEADER_BG = "#f1f3f5"  # Column header band
COLOR_GROUP_BG = "#e9e3ff"   # Date group band
COLOR_BORDER = "#e0e0e0"
COLOR_RED = "#d32f2f"        # Past-due dates


class ReportGenerationError(Exception):
    """Raised when xhtml2pdf cannot produce a document"""
    pass


@dataclass(frozen=True)
class ReportColumn:
    label: str
    field: KeyFunc
    width: str
    kind: str = "text"  # text | date | check


@dataclass(frozen=True)
class ReportLayout:
    title: str
    group_key: KeyFunc
    columns: List[ReportColumn]
    total_field: Optional[KeyFunc] = None
    job_field: Optional[KeyFunc] = None
    group_heading: str = "Date"
    total_label: str = "Total Boxes"
    preprocess: Any = None


# =============================================================================
# CELL FORMATTING
# =============================================================================

def format_short_date(value: Any) -> str:
    """Format as DD-MMM-YY, or '-' for empty values"""
    if not value:
        return "-"
    if isinstance(value, datetime):
        return value.strftime("%d-%b-%y")
    if isinstance(value, date):
        return value.strftime("%d-%b-%y")
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00')).strftime("%d-%b-%y")
    except ValueError:
        return str(value)


def format_check(value: Any) -> str:
    return "X" if value not in (None, False, "", 0) else ""


def _address(*fields: str):
    def read(row: Dict[str, Any]) -> str:
        parts = [get_field(row, f) for f in fields]
        return ", ".join(str(p) for p in parts if p)
    return read


# =============================================================================
# REPORT LAYOUTS
# =============================================================================

PLANT_JOB_COLUMNS = [
    ReportColumn("Job #", "job_number", "9%"),
    ReportColumn("Client", "sales_orders.shipping_client_name", "17%"),
    ReportColumn("Address", _address("sales_orders.shipping_street", "sales_orders.shipping_city"), "20%"),
    ReportColumn("Boxes", "sales_orders.cabinet.box", "6%"),
    ReportColumn("Door", "sales_orders.cabinet.door_styles.name", "10%"),
    ReportColumn("Species", "sales_orders.cabinet.species.Species", "9%"),
    ReportColumn("Color", "sales_orders.cabinet.colors.Name", "9%"),
    ReportColumn("Canopy", "is_canopy_required", "5%", "check"),
    ReportColumn("Woodtop", "is_woodtop_required", "5%", "check"),
    ReportColumn("Cust Cab", "is_custom_cab_required", "5%", "check"),
    ReportColumn("Wrapped", "installation.wrap_completed", "5%", "check"),
]

WRAP_SCHEDULE_LAYOUT = ReportLayout(
    title="Wrap Schedule",
    group_key="installation.wrap_date",
    columns=PLANT_JOB_COLUMNS,
    total_field="sales_orders.cabinet.box",
    job_field="job_number",
    group_heading="Wrap Date",
    preprocess=format_wrap_schedule_data,
)

PRODUCTION_SCHEDULE_LAYOUT = ReportLayout(
    title="Production Schedule",
    group_key="installation.wrap_date",
    columns=PLANT_JOB_COLUMNS[:7] + [
        ReportColumn("Placement", "production_schedule.placement_date", "8%", "date"),
        ReportColumn("Ship", "production_schedule.ship_schedule", "8%", "date"),
        ReportColumn("Assembly", "production_schedule.assembly_completed_actual", "5%", "check"),
    ],
    total_field="sales_orders.cabinet.box",
    job_field="job_number",
    group_heading="Wrap Date",
    preprocess=format_production_schedule_data,
)

SHIP_SCHEDULE_LAYOUT = ReportLayout(
    title="Shipping Schedule",
    group_key="production_schedule.ship_schedule",
    columns=[
        ReportColumn("Job #", "job_number", "9%"),
        ReportColumn("Client", "sales_orders.shipping_client_name", "17%"),
        ReportColumn(
            "Address",
            _address("sales_orders.shipping_street", "sales_orders.shipping_city"),
            "22%",
        ),
        ReportColumn("Boxes", "sales_orders.cabinet.box", "6%"),
        ReportColumn("Door", "sales_orders.cabinet.door_styles.name", "10%"),
        ReportColumn("Species", "sales_orders.cabinet.species.Species", "9%"),
        ReportColumn("Color", "sales_orders.cabinet.colors.Name", "9%"),
        ReportColumn("Wrapped", "installation.wrap_completed", "6%", "check"),
        ReportColumn("In WH", "installation.in_warehouse", "6%", "check"),
        ReportColumn("Partial", "installation.partially_shipped", "6%", "check"),
    ],
    total_field="sales_orders.cabinet.box",
    job_field="job_number",
    group_heading="Ship Date",
    preprocess=format_ship_schedule_data,
)

SERVICE_ORDER_LAYOUT = ReportLayout(
    title="Plant Service Orders",
    group_key="due_date",
    columns=[
        ReportColumn("SO #", "service_order_number", "10%"),
        ReportColumn("Job #", "job_number", "9%"),
        ReportColumn("Client", "client_name", "18%"),
        ReportColumn(
            "Address",
            _address("shipping_street", "shipping_city", "shipping_province", "shipping_zip"),
            "41%",
        ),
        ReportColumn("Pending Parts", "pending_parts_count", "10%"),
        ReportColumn("Due", "due_date", "12%", "date"),
    ],
    total_field="pending_parts_count",
    job_field="job_number",
    group_heading="Due Date",
    total_label="Pending Parts",
)

LAYOUTS = {
    "wrap": WRAP_SCHEDULE_LAYOUT,
    "production": PRODUCTION_SCHEDULE_LAYOUT,
    "shipping": SHIP_SCHEDULE_LAYOUT,
    "service_orders": SERVICE_ORDER_LAYOUT,
}


class ScheduleReportPDFGenerator:
    """
    Generates landscape A4 schedule reports using xhtml2pdf.

    Each ReportPage becomes exactly one physical page with a repeated title
    band and "Page n of N" footer.
    """

    def __init__(self, layout: ReportLayout, subtitle: str = "", generated_at: Optional[datetime] = None):
        """
        Initialize PDF generator.

        Args:
            layout: Which columns to print and how rows are grouped
            subtitle: Extra header line (e.g., the filtered date range)
            generated_at: Timestamp printed in the header (defaults to now)
        """
        self.layout = layout
        self.subtitle = subtitle
        self.generated_at = generated_at or datetime.now()

    def generate(self, pages: List[ReportPage]) -> BytesIO:
        """
        Generate a PDF from already paginated report pages.

        Returns:
            BytesIO buffer containing PDF data

        Raises:
            ReportGenerationError: If xhtml2pdf reports an error
        """
        logger.info(f"Generating PDF for {self.layout.title} ({len(pages)} pages)")

        html_content = self._build_html(pages)

        pdf_buffer = BytesIO()
        pisa_status = pisa.CreatePDF(html_content, dest=pdf_buffer)

        if pisa_status.err:
            logger.error(f"PDF generation failed with error code: {pisa_status.err}")
            raise ReportGenerationError(f"PDF generation failed: {pisa_status.err}")

        pdf_buffer.seek(0)
        logger.info("PDF generated successfully")
        return pdf_buffer

    def _get_css(self) -> str:
        """Get CSS styling for the PDF (xhtml2pdf compatible)"""
        return f"""
        @page {{
            size: a4 landscape;
            margin: 1.2cm 1cm;
        }}

        body {{
            font-family: Helvetica, Arial, sans-serif;
            font-size: 8pt;
            color: {COLOR_TITLE_GREY};
        }}

        .report-page {{
            page-break-after: always;
        }}

        .report-page.last {{
            page-break-after: auto;
        }}

        .title-band {{
            border-bottom: 2px solid {COLOR_TITLE_GREY};
            padding-bottom: 4px;
            margin-bottom: 8px;
        }}

        .title {{
            color: {COLOR_VIOLET};
            font-size: 15pt;
            font-weight: bold;
        }}

        .meta {{
            text-align: right;
            font-size: 7pt;
        }}

        table {{
            width: 100%;
            border-collapse: collapse;
        }}

        td, th {{
            padding: 3px 4px;
            border-bottom: 0.5px solid {COLOR_BORDER};
            text-align: left;
            vertical-align: top;
        }}

        th {{
            background-color: {COLOR_HEADER_BG};
            border-bottom: 1px solid #000;
            font-weight: bold;
        }}

        .group-header td {{
            background-color: {COLOR_GROUP_BG};
            font-size: 9pt;
            font-weight: bold;
            padding-top: 5px;
        }}

        .past-due {{
            color: {COLOR_RED};
        }}

        .group-footer td {{
            font-weight: bold;
            text-align: right;
            border-bottom: 1px solid {COLOR_TITLE_GREY};
        }}

        .check {{
            text-align: center;
        }}

        .no-data {{
            margin-top: 20px;
            text-align: center;
            color: #666666;
        }}

        .footer {{
            margin-top: 8px;
            text-align: center;
            font-size: 7pt;
        }}
        """

    def _build_html(self, pages: List[ReportPage]) -> str:
        """Build complete HTML document with embedded CSS"""
        html = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="UTF-8">
            <title>{escape(self.layout.title)}</title>
            <style>
                {self._get_css()}
            </style>
        </head>
        <body>
        """

        for index, page in enumerate(pages):
            html += self._build_page(page, total_pages=len(pages), last=index == len(pages) - 1)

        html += """
        </body>
        </html>
        """
        return html

    def _build_page(self, page: ReportPage, total_pages: int, last: bool) -> str:
        classes = "report-page last" if last else "report-page"
        html = f"""
        <div class="{classes}">
            <table class="title-band">
                <tr>
                    <td class="title">{escape(self.layout.title)}</td>
                    <td class="meta">
                        Printed: {self.generated_at.strftime('%b %d, %Y %H:%M')}<br>
                        {escape(self.subtitle)}
                    </td>
                </tr>
            </table>
        """

        if page.is_no_data:
            message = next(b.message for b in page.blocks if isinstance(b, NoDataBlock))
            html += f'<p class="no-data">{escape(message)}</p>'
        else:
            html += "<table>"
            for block in page.blocks:
                html += self._build_block(block)
            html += "</table>"

        html += f"""
            <p class="footer">Page {page.number} of {total_pages}</p>
        </div>
        """
        return html

    def _build_block(self, block: Any) -> str:
        colspan = len(self.layout.columns)

        if isinstance(block, GroupHeaderBlock):
            past_due = ""
            try:
                if date.fromisoformat(str(block.group_key)) < self.generated_at.date():
                    past_due = ' class="past-due"'
            except ValueError:
                pass
            day = f" ({escape(block.day_name)})" if block.day_name else ""
            return (
                f'<tr class="group-header"><td colspan="{colspan}">'
                f'{escape(self.layout.group_heading)}: <span{past_due}>{escape(block.label)}</span>{day}'
                f'</td></tr>'
            )

        if isinstance(block, ColumnHeaderBlock):
            cells = ""
            for i, column in enumerate(self.layout.columns):
                label = escape(column.label)
                if block.continued and i == 0:
                    label += " (cont.)"
                cells += f'<th width="{column.width}">{label}</th>'
            return f"<tr>{cells}</tr>"

        if isinstance(block, RowBlock):
            cells = ""
            for column in self.layout.columns:
                value = get_field(block.row, column.field)
                if column.kind == "check":
                    cells += f'<td class="check">{format_check(value)}</td>'
                elif column.kind == "date":
                    cells += f"<td>{escape(format_short_date(value))}</td>"
                else:
                    text = "-" if value in (None, "") else str(value)
                    cells += f"<td>{escape(text)}</td>"
            return f"<tr>{cells}</tr>"

        if isinstance(block, GroupFooterBlock):
            summary = f"{escape(self.layout.total_label)}: {block.total}"
            if block.job_count is not None:
                summary += f" &middot; Jobs: {block.job_count}"
            return f'<tr class="group-footer"><td colspan="{colspan}">{summary}</td></tr>'

        return ""


def generate_schedule_pdf(
    rows: List[Dict[str, Any]],
    layout: ReportLayout,
    subtitle: str = "",
    items_per_page: int = DEFAULT_ITEMS_PER_PAGE,
    output_path: Optional[str] = None
) -> BytesIO:
    """
    Convenience function to paginate and render a schedule report.

    Args:
        rows: View rows as fetched
        layout: Report layout (see LAYOUTS)
        subtitle: Extra header line
        items_per_page: Row blocks per printed page
        output_path: Optional path to save PDF file

    Returns:
        BytesIO buffer with PDF data
    """
    if layout.preprocess is not None:
        rows = layout.preprocess(rows)

    pages = paginate_for_print(
        rows,
        items_per_page=items_per_page,
        group_key=layout.group_key,
        total_field=layout.total_field,
        job_field=layout.job_field,
    )

    generator = ScheduleReportPDFGenerator(layout, subtitle)
    pdf_buffer = generator.generate(pages)

    # Optionally save to file
    if output_path:
        with open(output_path, 'wb') as f:
            f.write(pdf_buffer.getvalue())
        logger.info(f"PDF saved to {output_path}")

    pdf_buffer.seek(0)
    return pdf_buffer
