"""
Input validation helpers
Parse request values and raise ValidationError before anything touches the database.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation


class ValidationError(ValueError):
    """Invalid user input; routes answer it with HTTP 400"""


def require(data, field, label=None):
    """Return a non-empty string field or raise"""
    value = data.get(field)
    if isinstance(value, str):
        value = value.strip()
    if value is None or value == '':
        raise ValidationError(f"{label or field.replace('_', ' ').capitalize()} is required")
    return value


def parse_decimal(value, field='amount', minimum=Decimal('0'), allow_equal=True):
    """
    Parse a money amount

    Args:
        value: Raw value (string or number)
        field: Name used in error messages
        minimum: Lowest accepted value
        allow_equal: Whether `minimum` itself is accepted
    """
    if value is None or value == '':
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} is required")
    try:
        amount = Decimal(str(value).replace(',', '.'))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field.replace('_', ' ')}")

    if not amount.is_finite():
        raise ValidationError(f"Invalid {field.replace('_', ' ')}")
    if amount < minimum or (not allow_equal and amount == minimum):
        comparison = 'at least' if allow_equal else 'greater than'
        raise ValidationError(f"{field.replace('_', ' ').capitalize()} must be {comparison} {minimum}")
    return amount


def parse_date(value, field='date', default=None):
    """Parse a YYYY-MM-DD string into a date"""
    if value is None or value == '':
        if default is not None:
            return default
        raise ValidationError(f"{field.capitalize()} is required")
    try:
        return datetime.strptime(value, '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}, expected YYYY-MM-DD")


def parse_month(value):
    """Validate a YYYY-MM month string"""
    try:
        datetime.strptime(value or '', '%Y-%m')
    except ValueError:
        raise ValidationError("Invalid month, expected YYYY-MM")
    return value


def parse_choice(value, choices, field):
    if value not in choices:
        raise ValidationError(f"Invalid {field}: {value}")
    return value


def parse_int(value, field, minimum=None):
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field}")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field.capitalize()} must be at least {minimum}")
    return number


def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).lower() in ('1', 'true', 'yes', 'on')
