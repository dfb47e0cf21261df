"""
Utility functions for formatting, hashing, and date handling.
"""

import hashlib
from datetime import date, datetime
from typing import Any, Optional


INDIA_TIMEZONE = 'Asia/Kolkata'


def parse_date(value: Any) -> Optional[date]:
    """
    Coerce a date-like value into a date.

    Args:
        value: A date, a datetime, an ISO string, or an object exposing
            a to_date() accessor (e.g. a stored timestamp wrapper)

    Returns:
        The date, or None if the value cannot be interpreted
    """
    if value is None or value == '':
        return None

    to_date = getattr(value, 'to_date', None)
    if callable(to_date):
        value = to_date()

    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
        except ValueError:
            pass

        try:
            return datetime.strptime(text, '%Y-%m-%d').date()
        except ValueError:
            return None

    return None


def format_indian_number(amount: Any) -> str:
    """
    Group digits the Indian way (lakh/crore): 1234567 -> 12,34,567.

    Args:
        amount: Integer or numeric string

    Returns:
        Grouped number string, or the input as text if not numeric
    """
    try:
        num = int(float(amount))
    except (ValueError, TypeError):
        return str(amount) if amount is not None else ''

    sign = '-' if num < 0 else ''
    digits = str(abs(num))
    if len(digits) <= 3:
        return f'{sign}{digits}'

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return f"{sign}{','.join(groups)},{tail}"


def format_currency(amount: Any, currency: str = '₹') -> str:
    """
    Format a numeric amount as rupees.

    Args:
        amount: Numeric amount or numeric string
        currency: Currency symbol

    Returns:
        Formatted currency string, or '' when no amount is given
    """
    if amount is None or amount == '':
        return ''
    grouped = format_indian_number(amount)
    if not grouped or not grouped.lstrip('-').replace(',', '').isdigit():
        return str(amount)
    return f'{currency}{grouped}'


def format_percentage(value: Any) -> str:
    """
    Format a numeric value as percentage.

    Args:
        value: Numeric percentage (e.g., 60 for 60%)

    Returns:
        Formatted percentage string
    """
    if value is None:
        return ''

    try:
        num = float(value)
        if num == int(num):
            return f'{int(num)}%'
        return f'{num:.2f}%'
    except (ValueError, TypeError):
        return str(value)


def ordinal(n: int) -> str:
    """
    Convert a number to its ordinal form.

    Args:
        n: Integer number

    Returns:
        Ordinal string (1st, 2nd, 3rd, etc.)
    """
    if 10 <= n % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th')
    return f'{n}{suffix}'


def calculate_sha256(data: bytes) -> str:
    """
    Calculate SHA256 hash of data.

    Args:
        data: Bytes to hash

    Returns:
        Hexadecimal hash string
    """
    return hashlib.sha256(data).hexdigest()


def short_hash(full_hash: str, length: int = 16) -> str:
    """
    Get a shortened version of a hash for display.

    Args:
        full_hash: Full hash string
        length: Number of characters to return

    Returns:
        Shortened hash string
    """
    if not full_hash:
        return ''
    return full_hash[:length]


def escape_text(text: str) -> str:
    """
    Escape special characters in text for safe PDF rendering.

    Args:
        text: Input text

    Returns:
        Escaped text safe for ReportLab
    """
    if not text:
        return ''

    # ReportLab uses XML-like escaping for special characters
    replacements = [
        ('&', '&amp;'),
        ('<', '&lt;'),
        ('>', '&gt;'),
        ('"', '&quot;'),
    ]

    result = text
    for old, new in replacements:
        result = result.replace(old, new)

    return result
