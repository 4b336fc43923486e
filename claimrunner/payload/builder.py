"""Payload builder: turns declarative test cases into claim submissions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from ..config import DEFAULT_CURRENCY
from ..errors import InvalidTestCase
from ..models import LineItem, Money, SubmissionPayload, TestCase
from ..utils import format_wire_date
from .pricing import PER_DIEM_CODES, compute_net_amount


class PayloadBuilder:
    """Builds the canonical submission payload for a test case.

    The builder is deterministic and side-effect free: the same test case
    always produces an equal payload.
    """

    def __init__(
        self,
        per_diem_codes: Iterable[str] = PER_DIEM_CODES,
        currency: str = DEFAULT_CURRENCY,
    ) -> None:
        """Initialize the builder.

        Args:
            per_diem_codes: Intervention codes priced per service day
            currency: Currency used when a line item does not name one
        """
        self.per_diem_codes = frozenset(code.strip().upper() for code in per_diem_codes)
        self.currency = currency

    def build(
        self,
        test_case: TestCase,
        total_override: float | None = None,
    ) -> SubmissionPayload:
        """Build the submission payload for a test case.

        Args:
            test_case: Test case to materialize
            total_override: Manual total replacing the calculated sum. When
                omitted, the test case's declared total (if any) is used.

        Returns:
            SubmissionPayload exposing both the submitted and calculated totals

        Raises:
            InvalidTestCase: If the test case has no line items, or lacks a
                patient/provider and is not bundle-only
        """
        self.validate(test_case)

        items = []
        calculated_total = 0.0
        for item in test_case.line_items:
            net_amount = compute_net_amount(item, self.per_diem_codes)
            calculated_total += net_amount
            items.append(self._line_item_to_wire(item, net_amount))
        calculated_total = round(calculated_total, 2)

        override = total_override
        if override is None:
            override = test_case.declared_total
        total_value = calculated_total if override is None else float(override)

        billable = test_case.billable_period
        return SubmissionPayload(
            title=test_case.title,
            test=test_case.kind.value,
            use=test_case.usage_mode.value,
            claim_sub_type=test_case.claim_sub_type.value,
            patient=test_case.patient,
            provider=test_case.provider,
            practitioner=test_case.practitioner,
            related_claim_id=test_case.related_claim_id or "",
            product_or_service=tuple(items),
            billable_period={
                "billableStart": format_wire_date(billable.start),
                "billableEnd": format_wire_date(billable.end),
                "created": format_wire_date(billable.created),
            },
            total=Money(value=total_value, currency=self._currency_for(test_case)),
            calculated_total=calculated_total,
            total_overridden=override is not None,
            is_bundle_only=test_case.bundle_only,
        )

    def validate(self, test_case: TestCase) -> None:
        """Check that a test case can be turned into a payload."""
        if not test_case.line_items:
            raise InvalidTestCase(test_case.title, "at least one line item is required")

        if test_case.bundle_only:
            return

        missing = [
            name
            for name, value in (
                ("patient", test_case.patient),
                ("provider", test_case.provider),
            )
            if not value
        ]
        if missing:
            raise InvalidTestCase(
                test_case.title,
                f"{' and '.join(missing)} required for use '{test_case.usage_mode.value}'",
            )

    @staticmethod
    def reset_total(payload: SubmissionPayload) -> SubmissionPayload:
        """Discard a manual total and fall back to the calculated sum."""
        return replace(
            payload,
            total=Money(value=payload.calculated_total, currency=payload.total.currency),
            total_overridden=False,
        )

    def _line_item_to_wire(self, item: LineItem, net_amount: float) -> dict[str, Any]:
        currency = item.unit_price.currency or self.currency
        return {
            "code": item.code,
            "display": item.display,
            "quantity": {"value": str(item.quantity)},
            "unitPrice": {"value": item.unit_price.value, "currency": currency},
            "net": {"value": net_amount, "currency": currency},
            "servicePeriod": {
                "start": format_wire_date(item.service_period.start),
                "end": format_wire_date(item.service_period.end),
            },
            "sequence": item.sequence,
        }

    def _currency_for(self, test_case: TestCase) -> str:
        for item in test_case.line_items:
            if item.unit_price.currency:
                return item.unit_price.currency
        return self.currency


def build_payload(test_case: TestCase, total_override: float | None = None) -> SubmissionPayload:
    """Build a payload with the default builder settings."""
    return PayloadBuilder().build(test_case, total_override=total_override)
