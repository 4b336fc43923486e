"""Line item pricing rules.

Per-diem interventions are billed per service day; everything else is
billed flat at the unit price.
"""

from __future__ import annotations

from collections.abc import Iterable

from ..models import LineItem, Period

# Intervention codes priced per day of service
PER_DIEM_CODES: frozenset[str] = frozenset(
    {
        "SHA-03-001",
        "SHA-03-002",
        "SHA-03-003",
        "SHA-03-004",
        "SHA-03-005",
        "SHA-07-001",
        "SHA-07-002",
        "SHA-07-005",
        "SHA-07-006",
        "SHA-08-005",
        "SHA-10-001",
        "SHA-10-002",
        "SHA-10-003",
        "SHA-10-004",
        "SHA-10-005",
        "SHA-13-001",
    }
)


def service_days(period: Period) -> int:
    """Number of billable days in a service period.

    Counts whole days from start to end (2025-07-08..2025-07-10 is 2 days),
    with a floor of 1 so a same-day, open-ended or reversed period never
    produces a zero net amount.
    """
    if period.start is None or period.end is None:
        return 1
    return max(1, (period.end - period.start).days)


def is_per_diem(code: str, per_diem_codes: Iterable[str] = PER_DIEM_CODES) -> bool:
    return code.strip().upper() in per_diem_codes


def compute_net_amount(
    item: LineItem, per_diem_codes: Iterable[str] = PER_DIEM_CODES
) -> float:
    """Net amount of a line item: unit price times service days for per-diem codes."""
    unit_price = float(item.unit_price.value)
    if is_per_diem(item.code, per_diem_codes):
        return round(unit_price * service_days(item.service_period), 2)
    return round(unit_price, 2)


def calculate_total(
    items: Iterable[LineItem], per_diem_codes: Iterable[str] = PER_DIEM_CODES
) -> float:
    """Sum of net amounts across line items."""
    return round(sum(compute_net_amount(item, per_diem_codes) for item in items), 2)
