"""Pydantic models for stored test case records.

A record mirrors the `formData` document the claims API receives, so test
cases can be copied from a captured submission and edited by hand.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config import DEFAULT_CURRENCY
from ..models import (
    BillablePeriod,
    ClaimSubType,
    LineItem,
    Money,
    Period,
    TestCase,
    TestKind,
    UsageMode,
)
from ..utils import parse_flexible_date


def _check_date(value: str | None) -> str | None:
    if value in (None, ""):
        return None
    if parse_flexible_date(value) is None:
        raise ValueError(f"Invalid date: {value}")
    return value


class MoneyRecord(BaseModel):
    value: float
    currency: str = DEFAULT_CURRENCY

    def to_money(self) -> Money:
        return Money(value=self.value, currency=self.currency or DEFAULT_CURRENCY)


class QuantityRecord(BaseModel):
    value: int = 1

    @field_validator("value")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1")
        return v


class PeriodRecord(BaseModel):
    start: str | None = None
    end: str | None = None

    @field_validator("start", "end")
    @classmethod
    def validate_date(cls, v: str | None) -> str | None:
        return _check_date(v)

    def to_period(self) -> Period:
        return Period(start=parse_flexible_date(self.start), end=parse_flexible_date(self.end))


class BillablePeriodRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    billable_start: str | None = Field(default=None, alias="billableStart")
    billable_end: str | None = Field(default=None, alias="billableEnd")
    created: str | None = None

    @field_validator("billable_start", "billable_end", "created")
    @classmethod
    def validate_date(cls, v: str | None) -> str | None:
        return _check_date(v)

    def to_billable_period(self) -> BillablePeriod:
        return BillablePeriod(
            start=parse_flexible_date(self.billable_start),
            end=parse_flexible_date(self.billable_end),
            created=parse_flexible_date(self.created),
        )


class LineItemRecord(BaseModel):
    """One `productOrService` entry."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    code: str
    display: str = ""
    quantity: QuantityRecord = Field(default_factory=QuantityRecord)
    unit_price: MoneyRecord = Field(alias="unitPrice")
    service_period: PeriodRecord = Field(default_factory=PeriodRecord, alias="servicePeriod")
    sequence: int | None = None

    @field_validator("code")
    @classmethod
    def validate_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Intervention code is required")
        return v


class UseRecord(BaseModel):
    id: str = UsageMode.CLAIM.value

    @field_validator("id")
    @classmethod
    def validate_use(cls, v: str) -> str:
        valid = [mode.value for mode in UsageMode]
        if v not in valid:
            raise ValueError(f"Invalid use: {v}. Valid: {valid}")
        return v


class TestCaseRecord(BaseModel):
    """A stored test case (`formData` document)."""

    __test__ = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str
    test: str = TestKind.POSITIVE.value
    description: str | None = None
    patient: dict[str, Any] | None = None
    provider: dict[str, Any] | None = None
    practitioner: dict[str, Any] | None = None
    use: UseRecord = Field(default_factory=UseRecord)
    claim_sub_type: str = Field(default=ClaimSubType.INPATIENT.value, alias="claimSubType")
    related_claim_id: str | None = Field(default=None, alias="relatedClaimId")
    product_or_service: list[LineItemRecord] = Field(
        default_factory=list, alias="productOrService"
    )
    billable_period: BillablePeriodRecord = Field(
        default_factory=BillablePeriodRecord, alias="billablePeriod"
    )
    total: MoneyRecord | None = None
    is_bundle_only: bool = False

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("test")
    @classmethod
    def validate_test(cls, v: str) -> str:
        v = v.strip().lower()
        valid = [kind.value for kind in TestKind]
        if v not in valid:
            raise ValueError(f"Invalid test: {v}. Valid: {valid}")
        return v

    @field_validator("claim_sub_type")
    @classmethod
    def validate_claim_sub_type(cls, v: str) -> str:
        try:
            return ClaimSubType.parse(v).value
        except ValueError:
            raise ValueError(
                f"Invalid claimSubType: {v}. Valid: {[t.value for t in ClaimSubType]}"
            ) from None

    def to_test_case(self) -> TestCase:
        """Convert into the immutable domain model."""
        line_items = tuple(
            LineItem(
                code=item.code,
                display=item.display,
                unit_price=item.unit_price.to_money(),
                service_period=item.service_period.to_period(),
                quantity=item.quantity.value,
                sequence=item.sequence or position,
            )
            for position, item in enumerate(self.product_or_service, start=1)
        )
        return TestCase(
            title=self.title,
            kind=TestKind(self.test),
            description=self.description,
            patient=self.patient,
            provider=self.provider,
            practitioner=self.practitioner,
            line_items=line_items,
            billable_period=self.billable_period.to_billable_period(),
            declared_total=self.total.value if self.total else None,
            usage_mode=UsageMode(self.use.id),
            claim_sub_type=ClaimSubType(self.claim_sub_type),
            related_claim_id=self.related_claim_id or None,
            bundle_only=self.is_bundle_only,
        )
