# FILE: clinic_billing/schemas/patient.py
from __future__ import annotations

import enum
import re
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class PatientFilter(str, enum.Enum):
    ALL = "all"
    PENDING = "pending"
    PAID = "paid"


class PatientCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=120)
    phone: str = Field(..., max_length=20)
    email: EmailStr
    address: str = Field(..., min_length=10, max_length=255)
    services: List[str] = Field(..., min_length=1)
    prescription: Optional[str] = None

    @field_validator("name", "address", mode="before")
    @classmethod
    def _strip(cls, v):
        return str(v or "").strip()

    @field_validator("phone", mode="before")
    @classmethod
    def _phone(cls, v):
        s = str(v or "").strip()
        if len(re.sub(r"\D", "", s)) < 10:
            raise ValueError("Phone number must be at least 10 digits")
        return s

    @field_validator("services", mode="before")
    @classmethod
    def _services(cls, v):
        # the form sends "Consultation, X-ray"
        if isinstance(v, str):
            v = v.split(",")
        out = [str(s).strip() for s in (v or []) if str(s).strip()]
        if not out:
            raise ValueError("Please specify at least one service")
        return out


class PatientOut(BaseModel):
    id: int
    name: str
    phone: str
    email: str
    address: str
    services: List[str] = []
    prescription: Optional[str] = None
    visit_date: datetime
    total_cost: Decimal
    pending_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PatientDetailOut(PatientOut):
    has_pending: bool = False
    credit: Decimal = Decimal("0.00")
    actions: List[str] = []


class PatientBalancesOut(BaseModel):
    patient_id: int
    total_cost: Decimal
    paid: Decimal
    pending_amount: Decimal
    credit: Decimal = Decimal("0.00")
