"""Date parsing and formatting utilities for claim payloads."""

from __future__ import annotations

from datetime import date, datetime

# Reasonable date bounds for healthcare claims
MIN_VALID_YEAR = 1900
MAX_VALID_YEAR = 2100

WIRE_DATE_FORMAT = "%Y-%m-%d"


def parse_flexible_date(date_str: str | date | None) -> date | None:
    """Parse a date from multiple common formats with validation.

    Supports the following formats:
    - ISO 8601: YYYY-MM-DD (e.g., 2025-07-08)
    - ISO 8601 timestamp: YYYY-MM-DDTHH:MM:SS (time part is dropped)
    - US format: MM/DD/YYYY (e.g., 07/08/2025)
    - Compact: YYYYMMDD (e.g., 20250708)

    Args:
        date_str: Date string to parse, an existing date, or None

    Returns:
        Parsed date, or None if parsing fails or input is empty

    Examples:
        >>> parse_flexible_date("2025-07-08")
        datetime.date(2025, 7, 8)
        >>> parse_flexible_date("07/08/2025")
        datetime.date(2025, 7, 8)
        >>> parse_flexible_date("")
        None
        >>> parse_flexible_date("2025-02-30")  # Invalid date
        None
    """
    if not date_str:
        return None
    if isinstance(date_str, datetime):
        return date_str.date()
    if isinstance(date_str, date):
        return date_str

    value = date_str.strip()
    if "T" in value:
        value = value.split("T", 1)[0]

    formats = [
        WIRE_DATE_FORMAT,  # ISO 8601
        "%m/%d/%Y",  # US format
        "%Y%m%d",  # Compact
    ]

    for fmt in formats:
        try:
            parsed = datetime.strptime(value, fmt)
            if parsed.year < MIN_VALID_YEAR or parsed.year > MAX_VALID_YEAR:
                continue
            return parsed.date()
        except ValueError:
            # strptime raises ValueError for invalid dates like Feb 30
            continue

    return None


def format_wire_date(value: date | None) -> str:
    """Format a date as YYYY-MM-DD; a missing date becomes an empty string."""
    if value is None:
        return ""
    return value.strftime(WIRE_DATE_FORMAT)
