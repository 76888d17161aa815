# FILE: clinic_billing/models/billing.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from clinic_billing.db.base import Base


class BillStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class PayMode(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    UPI = "UPI"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"


class PaymentStatus(str, enum.Enum):
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class SubmissionKind(str, enum.Enum):
    """What a bill form submission means; not persisted."""
    NEW_BILL = "NEW_BILL"
    EDIT_BILL = "EDIT_BILL"
    STANDALONE_PAYMENT = "STANDALONE_PAYMENT"


class Bill(Base):
    """
    Itemized charge issued to a patient.

    total_amount == sum(items.amount) and services_summary are rewritten
    together with the items; status is derived by the reconciliation engine.
    """
    __tablename__ = "bills"
    __table_args__ = (Index("ix_bills_patient_status", "patient_id",
                            "status"), )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False,
        index=True,
    )

    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(
        Enum(BillStatus, native_enum=False, length=16),
        nullable=False,
        default=BillStatus.PENDING,
    )
    issue_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    notes = Column(Text, nullable=True)
    services_summary = Column(String(500), nullable=False, default="")

    cancelled_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    patient = relationship("Patient", back_populates="bills")
    items = relationship(
        "BillItem",
        back_populates="bill",
        cascade="all, delete-orphan",
        order_by="BillItem.seq",
    )
    payments = relationship("Payment", back_populates="bill")

    @property
    def invoice_number(self) -> str:
        return f"INV-{int(self.id or 0):06d}"


class BillItem(Base):
    __tablename__ = "bill_items"

    id = Column(Integer, primary_key=True, index=True)
    bill_id = Column(
        Integer,
        ForeignKey("bills.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    seq = Column(Integer, nullable=False, default=0)

    label = Column(String(120), nullable=False, default="")
    description = Column(String(255), nullable=False, default="")
    amount = Column(Numeric(12, 2), nullable=False, default=0)

    bill = relationship("Bill", back_populates="items")


class Payment(Base):
    """
    Money received from a patient.

    bill_id NULL => standalone payment against the pending balance.
    Rows are never edited once COMPLETED; corrections are new rows.
    """
    __tablename__ = "payments"
    __table_args__ = (Index("ix_payments_patient_status", "patient_id",
                            "status"), )

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False,
        index=True,
    )
    bill_id = Column(Integer, ForeignKey("bills.id"), nullable=True, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    mode = Column(
        Enum(PayMode, native_enum=False, length=20),
        nullable=False,
        default=PayMode.CASH,
    )
    status = Column(
        Enum(PaymentStatus, native_enum=False, length=16),
        nullable=False,
        default=PaymentStatus.COMPLETED,
    )
    reference_no = Column(String(80), nullable=True)
    notes = Column(Text, nullable=True)
    paid_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    patient = relationship("Patient", back_populates="payments")
    bill = relationship("Bill", back_populates="payments")
