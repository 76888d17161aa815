# FILE: clinic_billing/schemas/billing.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clinic_billing.models.billing import (
    BillStatus,
    PaymentStatus,
    PayMode,
    SubmissionKind,
)


class BillItemIn(BaseModel):
    # "item" is what the front-office form calls the label
    label: str = Field("", validation_alias="item")
    description: str = ""
    # raw input; blank / junk counts as 0 in the ledger
    amount: Any = 0

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("label", "description", mode="before")
    @classmethod
    def _text(cls, v):
        return "" if v is None else str(v)


class BillSubmitIn(BaseModel):
    items: List[BillItemIn] = []
    notes: Optional[str] = None
    # kept raw so non-numeric input reaches the service as INVALID_AMOUNT
    paid_amount: Any = 0
    mode: PayMode = PayMode.CASH
    kind: Optional[SubmissionKind] = None
    bill_id: Optional[int] = None
    issue_date: Optional[datetime] = None


class PendingPaymentIn(BaseModel):
    amount: Any
    mode: PayMode = PayMode.CASH
    reference_no: Optional[str] = Field(None, max_length=80)
    notes: Optional[str] = None


class BillItemOut(BaseModel):
    seq: int
    label: str
    description: str
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class BillOut(BaseModel):
    id: int
    invoice_number: str
    patient_id: int
    total_amount: Decimal
    status: BillStatus
    issue_date: datetime
    notes: Optional[str] = None
    services_summary: str
    items: List[BillItemOut] = []

    model_config = ConfigDict(from_attributes=True)


class PaymentOut(BaseModel):
    id: int
    patient_id: int
    bill_id: Optional[int] = None
    amount: Decimal
    mode: PayMode
    status: PaymentStatus
    reference_no: Optional[str] = None
    notes: Optional[str] = None
    paid_at: datetime

    model_config = ConfigDict(from_attributes=True)


class BillResultOut(BaseModel):
    kind: SubmissionKind
    bill: Optional[BillOut] = None
    payment: Optional[PaymentOut] = None
    excess_payment: Optional[PaymentOut] = None
    unapplied_amount: Decimal = Decimal("0.00")

    model_config = ConfigDict(from_attributes=True)


class InvoiceItemOut(BaseModel):
    item: str
    description: str
    amount: Decimal


class InvoiceOut(BaseModel):
    invoice_number: str
    bill_id: int
    bill_date: date
    due_date: date
    items: List[InvoiceItemOut]
    notes: str
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    amount_due: Decimal
    filename: str
