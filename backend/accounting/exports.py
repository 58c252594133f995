"""
Export utilities for ledger reports.
Supports Excel (.xlsx), CSV (.csv), and Text (.txt) formats.

Every exporter returns bytes so callers can write a file, attach it to an
email or wrap it in an HTTP response.
"""
import csv
import io
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter


class ExportFormat:
    EXCEL = 'xlsx'
    CSV = 'csv'
    TXT = 'txt'

    CHOICES = [EXCEL, CSV, TXT]
    CONTENT_TYPES = {
        EXCEL: 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
        CSV: 'text/csv',
        TXT: 'text/plain',
    }


def format_value(value: Any) -> str:
    """Format a value for text exports."""
    if value is None:
        return ''
    if isinstance(value, datetime):
        return value.strftime('%Y-%m-%d %H:%M:%S')
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    return str(value)


def _excel_value(value: Any, numeric: bool):
    # Amounts stay numbers in the sheet so they can be summed there
    if numeric and isinstance(value, Decimal):
        return float(value)
    return format_value(value)


def export_to_excel(
    data: list[dict],
    columns: list[dict],
    title: str = 'Export',
    sheet_name: str = 'Data',
    footer: dict | None = None,
) -> bytes:
    """
    Export rows to an Excel workbook.

    Args:
        data: Rows as dictionaries
        columns: Column definitions with 'key', 'header', optional 'width'
                 and 'numeric'
        title: Title shown above the header row
        sheet_name: Name of the worksheet
        footer: Optional totals row, keyed like the data rows
    """
    wb = Workbook()
    ws = wb.active
    ws.title = sheet_name

    header_font = Font(bold=True, color='FFFFFF')
    header_fill = PatternFill(start_color='4472C4', end_color='4472C4', fill_type='solid')
    thin = Side(style='thin')
    border = Border(left=thin, right=thin, top=thin, bottom=thin)

    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(columns))
    title_cell = ws.cell(row=1, column=1, value=title)
    title_cell.font = Font(bold=True, size=14)
    title_cell.alignment = Alignment(horizontal='center')

    header_row = 3
    for col_idx, col in enumerate(columns, 1):
        cell = ws.cell(row=header_row, column=col_idx, value=col['header'])
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
        cell.border = border
        ws.column_dimensions[get_column_letter(col_idx)].width = col.get('width', 15)

    rows = list(data) + ([footer] if footer else [])
    for row_idx, row_data in enumerate(rows, header_row + 1):
        for col_idx, col in enumerate(columns, 1):
            numeric = col.get('numeric', False)
            cell = ws.cell(
                row=row_idx,
                column=col_idx,
                value=_excel_value(row_data.get(col['key'], ''), numeric),
            )
            cell.border = border
            if numeric:
                cell.alignment = Alignment(horizontal='right')
                cell.number_format = '#,##0.00'
            if footer and row_idx == header_row + len(rows):
                cell.font = Font(bold=True)

    ws.freeze_panes = ws.cell(row=header_row + 1, column=1)

    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


def export_to_csv(
    data: list[dict],
    columns: list[dict],
    footer: dict | None = None,
    delimiter: str = ',',
) -> bytes:
    """Export rows to UTF-8 CSV (with BOM, for Excel)."""
    output = io.StringIO()
    writer = csv.writer(output, delimiter=delimiter, quoting=csv.QUOTE_MINIMAL)

    writer.writerow([col['header'] for col in columns])
    for row_data in list(data) + ([footer] if footer else []):
        writer.writerow([format_value(row_data.get(col['key'], '')) for col in columns])

    return output.getvalue().encode('utf-8-sig')


def export_to_txt(
    data: list[dict],
    columns: list[dict],
    footer: dict | None = None,
    separator: str = '  ',
) -> bytes:
    """Export rows as a fixed-width text table."""
    rows = list(data) + ([footer] if footer else [])
    widths = []
    for col in columns:
        width = max([len(col['header'])] + [len(format_value(r.get(col['key'], ''))) for r in rows])
        widths.append(min(width, 50))

    def line(values):
        parts = []
        for col, width, value in zip(columns, widths, values):
            if len(value) > width:
                value = value[:width - 3] + '...'
            parts.append(value.rjust(width) if col.get('numeric') else value.ljust(width))
        return separator.join(parts).rstrip()

    lines = [line([col['header'] for col in columns]), separator.join('-' * w for w in widths)]
    for index, row_data in enumerate(rows):
        if footer and index == len(rows) - 1:
            lines.append(separator.join('=' * w for w in widths))
        lines.append(line([format_value(row_data.get(col['key'], '')) for col in columns]))

    return ('\n'.join(lines) + '\n').encode('utf-8')


def render_export(
    data: list[dict],
    columns: list[dict],
    format: str,
    title: str = 'Export',
    footer: dict | None = None,
) -> bytes:
    """
    Render rows in the requested format.

    Raises:
        ValueError: unknown format
    """
    if format not in ExportFormat.CHOICES:
        raise ValueError(f"Invalid format: {format}. Must be one of {ExportFormat.CHOICES}")

    if format == ExportFormat.EXCEL:
        return export_to_excel(data, columns, title=title, footer=footer)
    if format == ExportFormat.CSV:
        return export_to_csv(data, columns, footer=footer)
    return export_to_txt(data, columns, footer=footer)


# =============================================================================
# Trial Balance Export Configuration
# =============================================================================

TRIAL_BALANCE_EXPORT_COLUMNS = [
    {'key': 'account_number', 'header': 'Account No.', 'width': 12},
    {'key': 'code', 'header': 'Account Code', 'width': 28},
    {'key': 'name', 'header': 'Account Name', 'width': 30},
    {'key': 'type', 'header': 'Type', 'width': 10},
    {'key': 'debit', 'header': 'Debit', 'width': 15, 'numeric': True},
    {'key': 'credit', 'header': 'Credit', 'width': 15, 'numeric': True},
    {'key': 'balance', 'header': 'Balance', 'width': 15, 'numeric': True},
    {'key': 'side', 'header': 'Side', 'width': 8},
]


def prepare_trial_balance_export_data(report: dict) -> tuple[list[dict], dict]:
    """Rows and totals footer for a trial_balance() report."""
    data = []
    for item in report['items']:
        data.append({
            'account_number': item['account_number'],
            'code': item['code'],
            'name': item['name'],
            'type': item['type'],
            'debit': item['debit'],
            'credit': item['credit'],
            'balance': item['normal_balance']['amount'],
            'side': item['normal_balance']['side'],
        })
    totals = report['totals']
    footer = {
        'name': 'Total',
        'debit': totals['total_debit'],
        'credit': totals['total_credit'],
        'balance': totals['difference'],
        'side': 'OK' if totals['is_balanced'] else 'DIFF',
    }
    return data, footer


# =============================================================================
# Ledger Statement Export Configuration
# =============================================================================

LEDGER_EXPORT_COLUMNS = [
    {'key': 'date', 'header': 'Date', 'width': 20},
    {'key': 'reference_type', 'header': 'Reference Type', 'width': 22},
    {'key': 'reference_id', 'header': 'Reference', 'width': 10},
    {'key': 'narration', 'header': 'Narration', 'width': 35},
    {'key': 'debit', 'header': 'Debit', 'width': 15, 'numeric': True},
    {'key': 'credit', 'header': 'Credit', 'width': 15, 'numeric': True},
    {'key': 'running_balance', 'header': 'Balance', 'width': 15, 'numeric': True},
]


def prepare_ledger_export_data(statement: dict) -> tuple[list[dict], dict]:
    """
    Rows and footer for a ledger statement.

    Lines are exported oldest first, bracketed by the opening balance row
    and the closing balance footer.
    """
    data = [{'narration': 'Opening balance', 'running_balance': statement['opening_balance']}]
    for entry in reversed(statement['entries']):
        data.append({key: entry.get(key) for key in (
            'date', 'reference_type', 'reference_id', 'narration',
            'debit', 'credit', 'running_balance',
        )})
    footer = {'narration': 'Closing balance', 'running_balance': statement['closing_balance']}
    return data, footer
