# FILE: clinic_billing/models/patient.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from clinic_billing.db.base import Base


class Patient(Base):
    """
    Aggregation root for billing.

    total_cost / pending_amount are a materialized view over bills + payments.
    Only services.billing_balances.recalc_patient_balances writes them.
    """
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(120), nullable=False)

    # unique identifiers
    phone = Column(String(20), unique=True, index=True, nullable=False)
    email = Column(String(191), unique=True, index=True, nullable=False)

    address = Column(String(255), nullable=False)
    services = Column(JSON, nullable=False, default=list)
    prescription = Column(Text, nullable=True)
    visit_date = Column(DateTime, default=datetime.utcnow, nullable=False)

    # derived aggregates
    total_cost = Column(Numeric(12, 2), nullable=False, default=0)
    pending_amount = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False,
    )

    bills = relationship(
        "Bill",
        back_populates="patient",
        order_by="Bill.id",
    )
    payments = relationship(
        "Payment",
        back_populates="patient",
        order_by="Payment.id",
    )
