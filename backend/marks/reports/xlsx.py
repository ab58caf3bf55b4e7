"""XLSX serializer for report view models (openpyxl write-only workbook)."""
from openpyxl import Workbook
from openpyxl.cell import WriteOnlyCell
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .viewmodel import check_cancelled

HEADER_FILL = PatternFill(start_color='F3F4F6', end_color='F3F4F6', fill_type='solid')
HEADER_BORDER = Border(bottom=Side(style='thin', color='D1D5DB'))


def _cell(ws, value, font=None, fill=None, border=None, alignment=None):
    cell = WriteOnlyCell(ws, value=value)
    if font:
        cell.font = font
    if fill:
        cell.fill = fill
    if border:
        cell.border = border
    if alignment:
        cell.alignment = alignment
    return cell


def render_xlsx(vm, out, cancel=None):
    """Write ``vm`` as a single-sheet workbook to the binary file object ``out``.

    Layout: title row, subtitle row, bold header, one row per student, blank
    row, then one label/value row per summary item. Cell values are written
    as-is so numbers stay numeric.
    """
    wb = Workbook(write_only=True)
    ws = wb.create_sheet(title=(vm.kind.title() + ' report')[:31])

    # Column dimensions must be set before the first row is appended
    for idx, col in enumerate(vm.columns, start=1):
        ws.column_dimensions[get_column_letter(idx)].width = col.chars
    ws.freeze_panes = 'A4'

    ws.append([_cell(ws, vm.title, font=Font(bold=True, size=14))])
    ws.append([vm.subtitle])
    ws.append([
        _cell(ws, label, font=Font(bold=True), fill=HEADER_FILL, border=HEADER_BORDER,
              alignment=Alignment(horizontal='center'))
        for label in vm.header
    ])
    for row in vm.rows:
        check_cancelled(cancel)
        ws.append(list(row))

    ws.append([])
    for item in vm.summary:
        ws.append([_cell(ws, item.label, font=Font(bold=True)), item.value])

    check_cancelled(cancel)
    wb.save(out)
