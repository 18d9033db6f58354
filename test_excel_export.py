"""
Tests for the Excel export
"""

from datetime import date

from openpyxl import load_workbook

from plant_reports.excel_export import (
    SHEET_NAME,
    export_file_name,
    export_to_excel,
    rows_to_dataframe,
)

ROWS = [
    {"job_number": "1001", "client_name": "Smith", "sales_orders": {"cabinet": {"box": "5"}}},
    {"job_number": "1002", "client_name": "Jones", "sales_orders": {"cabinet": {"box": "3"}}},
]


def test_export_file_name():
    assert export_file_name("wrap_schedule", date(2024, 1, 5)) == "wrap_schedule_2024-01-05.xlsx"


def test_nested_rows_flatten_to_dotted_columns():
    df = rows_to_dataframe(ROWS)
    assert list(df.columns) == ["job_number", "client_name", "sales_orders.cabinet.box"]


def test_column_mapping_selects_orders_and_renames():
    df = rows_to_dataframe(ROWS, {"sales_orders.cabinet.box": "Boxes", "job_number": "Job #", "notes": "Notes"})

    assert list(df.columns) == ["Boxes", "Job #", "Notes"]
    assert df["Boxes"].tolist() == ["5", "3"]
    assert df["Notes"].isna().all()


def test_workbook_contents():
    buffer, name = export_to_excel(ROWS, "shipping_schedule", {"job_number": "Job #", "client_name": "Client"})

    assert name == export_file_name("shipping_schedule")
    wb = load_workbook(buffer)
    assert wb.sheetnames == [SHEET_NAME]

    ws = wb[SHEET_NAME]
    values = [[cell.value for cell in row] for row in ws.iter_rows()]
    assert values == [["Job #", "Client"], ["1001", "Smith"], ["1002", "Jones"]]
    assert ws["A1"].font.bold
    assert ws.freeze_panes == "A2"


def test_empty_export_still_writes_a_sheet():
    buffer, _ = export_to_excel([], "service_orders")
    wb = load_workbook(buffer)
    assert wb.sheetnames == [SHEET_NAME]
