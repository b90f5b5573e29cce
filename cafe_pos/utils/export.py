"""
Export utilities for generating Excel workbooks and CSV files
"""

import csv
import io
from io import BytesIO
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from flask import current_app, has_app_context
from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill, Alignment, Border, Side
from openpyxl.utils import get_column_letter

from cafe_pos.services.session_reports import group_sessions, session_totals

# Styles shared by every sheet
HEADER_FONT = Font(bold=True, color="FFFFFF", size=11)
HEADER_FILL = PatternFill(start_color="3B82F6", end_color="3B82F6", fill_type="solid")
TITLE_FONT = Font(bold=True, size=14)
DATE_FONT = Font(italic=True, size=10, color="666666")
LABEL_FONT = Font(bold=True)
THIN_BORDER = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)

CURRENCY_DEFAULTS = {
    'CURRENCY_SYMBOL': '€',
    'CURRENCY_SYMBOL_POSITION': 'after',
    'THOUSANDS_SEPARATOR': '.',
    'DECIMAL_SEPARATOR': ',',
}


def _currency_setting(key):
    if has_app_context():
        return current_app.config.get(key, CURRENCY_DEFAULTS[key])
    return CURRENCY_DEFAULTS[key]


def format_currency(value, symbol=None, position=None, thousands_sep=None, decimal_sep=None):
    """
    Format a number as currency using the configured locale rules

    With the default settings 1234.5 becomes '1.234,50 €'.
    """
    symbol = _currency_setting('CURRENCY_SYMBOL') if symbol is None else symbol
    position = position or _currency_setting('CURRENCY_SYMBOL_POSITION')
    thousands_sep = _currency_setting('THOUSANDS_SEPARATOR') if thousands_sep is None else thousands_sep
    decimal_sep = _currency_setting('DECIMAL_SEPARATOR') if decimal_sep is None else decimal_sep

    try:
        amount = Decimal(str(value)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    except (TypeError, ValueError, ArithmeticError):
        amount = Decimal('0.00')

    sign = '-' if amount < 0 else ''
    integer_part, fraction = f"{abs(amount):.2f}".split('.')
    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)
    number = f"{sign}{thousands_sep.join(groups)}{decimal_sep}{fraction}"

    if position == 'before':
        return f"{symbol}{number}"
    return f"{number} {symbol}"


def format_date(dt, format_str='%Y-%m-%d'):
    """Format a datetime object"""
    if dt:
        if isinstance(dt, str):
            return dt
        return dt.strftime(format_str)
    return ''


def _split_columns(columns):
    if isinstance(columns, dict):
        return list(columns.values()), list(columns.keys())
    return list(columns), list(columns)


def _autosize(ws, column_count):
    for col_idx in range(1, column_count + 1):
        column_letter = get_column_letter(col_idx)
        max_length = 0
        for cell in ws[column_letter]:
            if cell.value is not None:
                max_length = max(max_length, len(str(cell.value)))
        ws.column_dimensions[column_letter].width = min(max_length + 2, 50)


def write_table_sheet(ws, data, columns, title=None):
    """
    Write a titled table into a worksheet

    Args:
        ws: Target worksheet
        data: List of dictionaries or list of lists containing the data
        columns: List of column headers or dict mapping keys to display names
        title: Optional title written above the table
    """
    headers, keys = _split_columns(columns)

    header_row = 1
    if title:
        ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(headers))
        title_cell = ws.cell(row=1, column=1, value=title)
        title_cell.font = TITLE_FONT
        title_cell.alignment = Alignment(horizontal='center')

        ws.merge_cells(start_row=2, start_column=1, end_row=2, end_column=len(headers))
        date_cell = ws.cell(row=2, column=1,
                            value=f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        date_cell.font = DATE_FONT
        date_cell.alignment = Alignment(horizontal='center')
        header_row = 4

    for col_idx, header in enumerate(headers, 1):
        cell = ws.cell(row=header_row, column=col_idx, value=header)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = Alignment(horizontal='center')
        cell.border = THIN_BORDER

    for row_idx, row_data in enumerate(data, header_row + 1):
        for col_idx, key in enumerate(keys, 1):
            if isinstance(row_data, dict):
                value = row_data.get(key, '')
            else:
                value = row_data[col_idx - 1] if col_idx - 1 < len(row_data) else ''

            cell = ws.cell(row=row_idx, column=col_idx, value=value)
            cell.border = THIN_BORDER

            if isinstance(value, (int, float)):
                cell.alignment = Alignment(horizontal='right')
            else:
                cell.alignment = Alignment(horizontal='left')

    _autosize(ws, len(headers))
    return ws


def write_key_value_sheet(ws, rows, title=None):
    """Two-column label/value sheet used for cover and summary pages"""
    row_idx = 1
    if title:
        title_cell = ws.cell(row=1, column=1, value=title)
        title_cell.font = TITLE_FONT
        row_idx = 3

    for label, value in rows:
        if label is None:
            row_idx += 1
            continue
        label_cell = ws.cell(row=row_idx, column=1, value=label)
        label_cell.font = LABEL_FONT
        ws.cell(row=row_idx, column=2, value=value)
        row_idx += 1

    _autosize(ws, 2)
    return ws


def save_workbook(wb):
    output = BytesIO()
    wb.save(output)
    output.seek(0)
    return output


def export_to_csv(data, columns, include_header=True):
    """
    Export data to CSV format

    Args:
        data: List of dictionaries or list of lists containing the data
        columns: List of column headers or dict mapping keys to display names
        include_header: Whether to include header row

    Returns:
        BytesIO object containing the CSV file
    """
    headers, keys = _split_columns(columns)

    text_output = io.StringIO()
    writer = csv.writer(text_output)

    if include_header:
        writer.writerow(headers)

    for row_data in data:
        if isinstance(row_data, dict):
            row = [row_data.get(key, '') for key in keys]
        else:
            row = row_data
        writer.writerow(row)

    output = BytesIO()
    output.write(text_output.getvalue().encode('utf-8-sig'))  # BOM for Excel compatibility
    output.seek(0)
    return output


# Filenames

def cash_register_filename(start, end, generated_at=None):
    generated_at = generated_at or datetime.now()
    return (f"cash_register_report_{format_date(start)}_{format_date(end)}_"
            f"{generated_at.strftime('%Y%m%d_%H%M%S')}.xlsx")


def time_report_filename(employee_name, month):
    safe_name = '_'.join((employee_name or 'employee').split())
    return f"time_report_{safe_name}_{month}.xlsx"


def expenses_filename(start, end):
    return f"expenses_{format_date(start)}_{format_date(end)}.csv"


# Expense CSV

EXPENSE_CSV_COLUMNS = ['Date', 'Category', 'Description', 'Amount']


def expense_csv_row(expense):
    """[date, supplier name or category label, description, formatted amount]"""
    supplier = getattr(expense, 'supplier', None)
    return [
        format_date(expense.date),
        supplier.name if supplier else expense.category_label,
        expense.description or '',
        format_currency(expense.amount),
    ]


def export_expenses_csv(expenses):
    """
    Export expenses to CSV

    Args:
        expenses: List of Expense objects

    Returns:
        BytesIO object with the CSV file
    """
    return export_to_csv([expense_csv_row(expense) for expense in expenses], EXPENSE_CSV_COLUMNS)


# Cash register workbook

def _company_rows(company):
    if company is None:
        return [('Company', current_app.config.get('BUSINESS_NAME', '') if has_app_context() else '')]
    return [
        ('Company', company.company_name),
        ('Address', company.address or ''),
        ('Phone', company.phone or ''),
        ('Email', company.email or ''),
        ('Tax ID', company.tax_id or ''),
    ]


def _money(value):
    return float(value or 0)


def build_cash_register_workbook(sessions, start, end, expenses=None, orders=None,
                                 company=None, generated_by=None, generated_at=None):
    """
    Build the cash register report

    Sheets: Info, Summary, Employees, Daily, Sessions, Expenses, Orders.

    Args:
        sessions: CashRegisterSession objects in the report window
        start, end: Report window (dates)
        expenses: Expense objects in the window
        orders: Order objects in the window
        company: CompanySettings row printed on the cover
        generated_by: Name of the employee requesting the report

    Returns:
        BytesIO object containing the workbook
    """
    expenses = expenses or []
    orders = orders or []
    generated_at = generated_at or datetime.now()

    wb = Workbook()

    # Info
    ws = wb.active
    ws.title = 'Info'
    info_rows = _company_rows(company) + [
        (None, None),
        ('Report', 'Cash Register Report'),
        ('Period', f"{format_date(start)} - {format_date(end)}"),
        ('Generated', generated_at.strftime('%Y-%m-%d %H:%M:%S')),
        ('Generated by', generated_by or ''),
    ]
    write_key_value_sheet(ws, info_rows, title='Cash Register Report')

    # Summary
    totals = session_totals(sessions)
    completed_sales = sum((Decimal(str(o.total or 0)) for o in orders if o.status == 'completed'),
                          Decimal('0'))
    expense_total = sum((Decimal(str(e.amount or 0)) for e in expenses), Decimal('0'))
    summary_rows = [
        ('Sessions', totals['session_count']),
        ('Open sessions', totals['open_count']),
        ('Total opening', _money(totals['total_opening'])),
        ('Total closing', _money(totals['total_closing'])),
        ('Balance', _money(totals['balance'])),
        (None, None),
        ('Completed orders', sum(1 for o in orders if o.status == 'completed')),
        ('Sales', _money(completed_sales)),
        ('Expenses', _money(expense_total)),
        ('Profit', _money(completed_sales - expense_total)),
    ]
    write_key_value_sheet(wb.create_sheet('Summary'), summary_rows, title='Summary')

    # Employees
    employee_columns = {
        'employee_name': 'Employee',
        'session_count': 'Sessions',
        'total_opening': 'Total Opening',
        'total_closing': 'Total Closing',
        'balance': 'Balance',
        'first_opened_at': 'First Opened',
        'last_closed_at': 'Last Closed',
    }
    employee_rows = []
    for group in group_sessions(sessions).values():
        employee_rows.append({
            'employee_name': group.employee_name or f"#{group.employee_id}",
            'session_count': group.session_count,
            'total_opening': _money(group.total_opening),
            'total_closing': _money(group.total_closing),
            'balance': _money(group.balance),
            'first_opened_at': format_date(group.first_opened_at, '%Y-%m-%d %H:%M'),
            'last_closed_at': format_date(group.last_closed_at, '%Y-%m-%d %H:%M'),
        })
    write_table_sheet(wb.create_sheet('Employees'), employee_rows, employee_columns,
                      title='Sessions by Employee')

    # Daily
    daily_columns = {
        'date': 'Date',
        'employee_name': 'Employee',
        'session_count': 'Sessions',
        'total_opening': 'Total Opening',
        'total_closing': 'Total Closing',
        'balance': 'Balance',
        'first_opened_at': 'First Opened',
        'last_closed_at': 'Last Closed',
    }
    daily_rows = []
    for group in group_sessions(sessions, by_day=True).values():
        daily_rows.append({
            'date': format_date(group.day),
            'employee_name': group.employee_name or f"#{group.employee_id}",
            'session_count': group.session_count,
            'total_opening': _money(group.total_opening),
            'total_closing': _money(group.total_closing),
            'balance': _money(group.balance),
            'first_opened_at': format_date(group.first_opened_at, '%H:%M'),
            'last_closed_at': format_date(group.last_closed_at, '%H:%M'),
        })
    write_table_sheet(wb.create_sheet('Daily'), daily_rows, daily_columns,
                      title='Sessions by Employee and Day')

    # Sessions
    session_columns = {
        'id': 'Session #',
        'employee_name': 'Employee',
        'opened_at': 'Opened',
        'closed_at': 'Closed',
        'opening_amount': 'Opening',
        'closing_amount': 'Closing',
        'difference': 'Difference',
        'status': 'Status',
        'notes': 'Notes',
    }
    session_rows = []
    for session in sessions:
        session_rows.append({
            'id': session.id,
            'employee_name': session.employee.full_name if session.employee else '',
            'opened_at': format_date(session.opened_at, '%Y-%m-%d %H:%M'),
            'closed_at': format_date(session.closed_at, '%Y-%m-%d %H:%M'),
            'opening_amount': _money(session.opening_amount),
            'closing_amount': _money(session.closing_amount) if session.closing_amount is not None else '',
            'difference': _money(session.difference),
            'status': session.status.title(),
            'notes': session.notes or '',
        })
    write_table_sheet(wb.create_sheet('Sessions'), session_rows, session_columns,
                      title='Session Detail')

    # Expenses
    expense_columns = {
        'date': 'Date',
        'category': 'Category',
        'supplier': 'Supplier',
        'description': 'Description',
        'amount': 'Amount',
    }
    expense_rows = [{
        'date': format_date(expense.date),
        'category': expense.category_label,
        'supplier': expense.supplier.name if expense.supplier else '',
        'description': expense.description or '',
        'amount': _money(expense.amount),
    } for expense in expenses]
    write_table_sheet(wb.create_sheet('Expenses'), expense_rows, expense_columns,
                      title='Expenses')

    # Orders
    order_columns = {
        'id': 'Order #',
        'created_at': 'Date',
        'employee': 'Employee',
        'status': 'Status',
        'payment_method': 'Payment',
        'total': 'Total',
    }
    order_rows = [{
        'id': order.id,
        'created_at': format_date(order.created_at, '%Y-%m-%d %H:%M'),
        'employee': order.employee.full_name if order.employee else '',
        'status': order.status.title(),
        'payment_method': (order.payment_method or 'cash').title(),
        'total': _money(order.total),
    } for order in orders]
    write_table_sheet(wb.create_sheet('Orders'), order_rows, order_columns, title='Orders')

    return save_workbook(wb)


# Employee time tracking workbook

def build_time_tracking_workbook(employee, month, days, month_stats, company=None):
    """
    Build the monthly time report of one employee

    Args:
        employee: EmployeeProfile
        month: Month as 'YYYY-MM'
        days, month_stats: Output of employee_month_stats

    Returns:
        BytesIO object containing the workbook with Summary, Daily and Sessions sheets
    """
    wb = Workbook()

    ws = wb.active
    ws.title = 'Summary'
    summary_rows = _company_rows(company) + [
        (None, None),
        ('Employee', employee.full_name),
        ('Role', employee.role),
        ('Month', month),
        (None, None),
        ('Days worked', month_stats['total_days_worked']),
        ('Hours worked', round(month_stats['total_hours_worked'], 2)),
        ('Average hours per day', round(month_stats['average_hours_per_day'], 2)),
        ('Total sales', _money(month_stats['total_sales'])),
        ('Total orders', month_stats['total_orders']),
        ('Sales per hour', round(_money(month_stats['sales_per_hour']), 2)),
    ]
    write_key_value_sheet(ws, summary_rows, title='Employee Time Report')

    daily_columns = {
        'date': 'Date',
        'session_count': 'Sessions',
        'first_check_in': 'First Check-in',
        'last_check_out': 'Last Check-out',
        'total_hours': 'Hours',
        'orders_count': 'Orders',
        'total_sales': 'Sales',
        'sales_per_hour': 'Sales/Hour',
    }
    daily_rows = [{
        'date': format_date(day['date']),
        'session_count': day['session_count'],
        'first_check_in': format_date(day['first_check_in'], '%H:%M'),
        'last_check_out': format_date(day['last_check_out'], '%H:%M'),
        'total_hours': round(day['total_hours'], 2),
        'orders_count': day['orders_count'],
        'total_sales': _money(day['total_sales']),
        'sales_per_hour': round(_money(day['sales_per_hour']), 2),
    } for day in days]
    write_table_sheet(wb.create_sheet('Daily'), daily_rows, daily_columns, title='Daily Detail')

    session_columns = {
        'date': 'Date',
        'opened_at': 'Opened',
        'closed_at': 'Closed',
        'hours': 'Hours',
        'opening_amount': 'Opening',
        'closing_amount': 'Closing',
        'status': 'Status',
    }
    session_rows = []
    for day in days:
        for session in day['sessions']:
            session_rows.append({
                'date': format_date(session.opened_at),
                'opened_at': format_date(session.opened_at, '%H:%M'),
                'closed_at': format_date(session.closed_at, '%H:%M'),
                'hours': round(session.hours_worked, 2),
                'opening_amount': _money(session.opening_amount),
                'closing_amount': _money(session.closing_amount) if session.closing_amount is not None else '',
                'status': session.status.title(),
            })
    write_table_sheet(wb.create_sheet('Sessions'), session_rows, session_columns,
                      title='Sessions')

    return save_workbook(wb)
