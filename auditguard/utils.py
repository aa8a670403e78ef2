from datetime import datetime, timedelta
import math
import secrets
import pandas as pd

IST_OFFSET = timedelta(hours=5, minutes=30)


def get_ist_time():
    """Returns current time in India (UTC+5:30)"""
    return datetime.utcnow() + IST_OFFSET


def isoformat_or_none(value):
    return value.isoformat() if value else None


def short_hex(nbytes=2):
    return secrets.token_hex(nbytes)


def get_value_from_row(row, candidates):
    # row may be dict or pandas Series
    for c in candidates:
        if isinstance(row, dict):
            if c in row and pd.notna(row[c]):
                return row[c]
        else:
            if c in row.index and pd.notna(row[c]):
                return row[c]
    return None


def cell_to_text(value):
    """Normalise a spreadsheet cell to a trimmed string (or None)."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        if value.hour or value.minute:
            return value.strftime('%d/%m/%Y %I:%M %p')
        return value.strftime('%d/%m/%Y')
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def round_half_up(value):
    return math.floor(value + 0.5)
