"""Excel export of stock history (openpyxl)."""

import io
from datetime import datetime

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter

from bbm.models.stock import StockMovement

COLUMNS = [
    ("No", 6),
    ("Date", 20),
    ("Type", 8),
    ("Location", 14),
    ("Amount (L)", 14),
    ("Balance (L)", 14),
    ("Notes", 40),
    ("User", 24),
]

NUMBER_FORMAT = "#,##0.00"
DATE_FORMAT = "yyyy-mm-dd hh:mm:ss"


def build_stock_workbook(rows: list[tuple[StockMovement, str | None]]) -> bytes:
    """Render (movement, user_name) rows as an .xlsx file."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Stock History"

    header_font = Font(bold=True, color="FFFFFF")
    header_fill = PatternFill("solid", fgColor="1F4E78")
    for col, (title, width) in enumerate(COLUMNS, start=1):
        cell = ws.cell(row=1, column=col, value=title)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")
        ws.column_dimensions[get_column_letter(col)].width = width
    ws.freeze_panes = "A2"

    for index, (movement, user_name) in enumerate(rows, start=1):
        ws.append([
            index,
            movement.created_at,
            movement.type.value,
            movement.location.value,
            float(movement.amount),
            float(movement.balance),
            movement.notes or "",
            user_name or "",
        ])
        row = ws.max_row
        ws.cell(row=row, column=2).number_format = DATE_FORMAT
        ws.cell(row=row, column=5).number_format = NUMBER_FORMAT
        ws.cell(row=row, column=6).number_format = NUMBER_FORMAT

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def export_filename(now: datetime | None = None) -> str:
    now = now or datetime.utcnow()
    return f"stock-history-{now:%Y%m%d-%H%M%S}.xlsx"
