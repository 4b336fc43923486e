"""Payload builder for claim submissions.

Computes per-line net amounts (per-diem aware), the calculated total, and
the wire shape expected by the claims API.
"""

from .builder import PayloadBuilder, build_payload
from .pricing import (
    PER_DIEM_CODES,
    calculate_total,
    compute_net_amount,
    is_per_diem,
    service_days,
)

__all__ = [
    "PayloadBuilder",
    "build_payload",
    "PER_DIEM_CODES",
    "calculate_total",
    "compute_net_amount",
    "is_per_diem",
    "service_days",
]
