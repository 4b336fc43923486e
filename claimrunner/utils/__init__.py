"""Shared utility functions for the claims test runner."""

from .date_parser import format_wire_date, parse_flexible_date
from .sanitization import sanitize_error_message

__all__ = ["format_wire_date", "parse_flexible_date", "sanitize_error_message"]
