"""Spreadsheet export of a quotation."""

import io
import logging
from decimal import Decimal
from typing import List, Union

from openpyxl import Workbook
from openpyxl.styles import Font

from presets import CompanyProfile
from quotation import Quotation, format_amount

logger = logging.getLogger(__name__)

SHEET_NAME = "Quotation"
ITEM_HEADER = ["Description of Goods", "QTY", "Unit", "Rate", "Amount"]
BOLD_LABELS = {"QUOTATION", "GRAND TOTAL", "Customer Details:", ITEM_HEADER[0]}

Cell = Union[str, int, float, None]


def _sheet_number(value: Decimal) -> Union[int, float]:
    """Excel cells hold numbers, keep whole values as integers."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _is_blank(row: List[Cell]) -> bool:
    return not any(cell not in (None, "") for cell in row)


def spreadsheet_filename(quotation: Quotation) -> str:
    return f"Quotation_{quotation.quote_number}.xlsx"


def build_sheet_rows(
    quotation: Quotation,
    company: CompanyProfile,
    grouping: str = "indian",
) -> List[List[Cell]]:
    """Lay out the quotation as spreadsheet rows, top to bottom.

    Args:
        quotation: The (validated) quotation to export
        company: Identity block printed above the customer details
        grouping: Thousands grouping used for formatted amounts

    Returns:
        Rows in sheet order with blank spacer rows removed
    """
    q = quotation
    rows: List[List[Cell]] = []
    if q.show_title_heading:
        rows.append(["QUOTATION"])
    rows.append([company.name])
    rows.extend([line] for line in company.address_lines)
    rows.append([company.phone])
    rows.append([f"Email: {company.email}" if company.email else ""])
    rows.append([""])
    rows.append(["Salesperson:", q.sales_person])
    rows.append([""])
    rows.append(["Customer Details:"])
    rows.append(["Name:", q.customer_name])
    rows.append(["Address:", q.address])
    rows.append(["Mobile:", q.mobile_number])
    rows.append([""])
    rows.append(["Quote No:", q.quote_number])
    rows.append(["Date:", q.date])
    rows.append(["Valid for:", f"{q.validity_days} Days"])
    rows.append([""])
    rows.append(list(ITEM_HEADER))
    for item in q.items:
        rows.append([
            item.description,
            _sheet_number(item.quantity),
            item.unit,
            _sheet_number(item.unit_rate),
            format_amount(item.amount, grouping),
        ])
    rows.append([""])
    rows.append(["GRAND TOTAL", "", "", "", format_amount(q.grand_total(), grouping)])
    if q.requirements.strip():
        rows.append([""])
        rows.append(["Requirements:", q.requirements])
    rows.append([""])
    rows.append(["Prepared By:", q.prepared_by])
    return [row for row in rows if not _is_blank(row)]


def write_workbook(
    quotation: Quotation,
    company: CompanyProfile,
    grouping: str = "indian",
) -> bytes:
    """Serialize the quotation to a single-sheet .xlsx file."""
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_NAME

    for row in build_sheet_rows(quotation, company, grouping):
        ws.append(row)
        if row and row[0] in BOLD_LABELS:
            for cell in ws[ws.max_row]:
                cell.font = Font(bold=True)

    ws.column_dimensions["A"].width = 40
    for column in ("B", "C", "D", "E"):
        ws.column_dimensions[column].width = 16

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info("Exported spreadsheet for quotation %s (%d items)", quotation.quote_number, len(quotation.items))
    return buffer.getvalue()
