# FILE: clinic_billing/services/billing_balances.py
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_billing.models.billing import (
    Bill,
    BillStatus,
    Payment,
    PaymentStatus,
)
from clinic_billing.models.patient import Patient
from clinic_billing.services.billing_math import D, money2

logger = logging.getLogger(__name__)


def _status_value(x) -> str:
    if x is None:
        return ""
    if hasattr(x, "value"):
        return str(x.value).upper()
    return str(x).split(".")[-1].upper()


def compute_patient_balances(bills: Iterable, payments: Iterable) -> Dict[str, Decimal]:
    """
    total_cost = sum of non-cancelled bill totals
    pending_amount = max(0, total_cost - sum of COMPLETED payments)
    credit = max(0, paid - total_cost), left when a paid bill is cancelled
             or edited down; it is reported, never applied automatically

    Accepts ORM rows or anything with total_amount/status (bills) and
    amount/status (payments).
    """
    total_cost = Decimal("0")
    for b in bills or []:
        if _status_value(getattr(b, "status", None)) == BillStatus.CANCELLED.value:
            continue
        total_cost += D(getattr(b, "total_amount", 0))

    paid = Decimal("0")
    for p in payments or []:
        if _status_value(getattr(p, "status", None)) != PaymentStatus.COMPLETED.value:
            continue
        paid += D(getattr(p, "amount", 0))

    pending = total_cost - paid

    return {
        "total_cost": money2(total_cost),
        "paid": money2(paid),
        "pending_amount": money2(max(Decimal("0"), pending)),
        "credit": money2(max(Decimal("0"), -pending)),
    }


def ledger_totals(db: Session, patient_id: int) -> Dict[str, Decimal]:
    """Same numbers as compute_patient_balances, summed in SQL."""
    billed = db.query(func.coalesce(func.sum(Bill.total_amount), 0)).filter(
        Bill.patient_id == patient_id,
        Bill.status != BillStatus.CANCELLED,
    ).scalar()

    paid = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.patient_id == patient_id,
        Payment.status == PaymentStatus.COMPLETED,
    ).scalar()

    total_cost = money2(billed)
    paid_d = money2(paid)
    pending = total_cost - paid_d

    return {
        "total_cost": total_cost,
        "paid": paid_d,
        "pending_amount": money2(max(Decimal("0"), pending)),
        "credit": money2(max(Decimal("0"), -pending)),
    }


def recalc_patient_balances(db: Session, patient: Patient) -> Dict[str, Decimal]:
    """
    Re-derive Patient.total_cost / pending_amount from the ledger.

    Runs inside the caller's transaction (flush only), so the aggregate is
    committed together with the bill/payment write that caused it.
    """
    db.flush()
    totals = ledger_totals(db, int(patient.id))

    before = (money2(patient.total_cost), money2(patient.pending_amount))
    patient.total_cost = totals["total_cost"]
    patient.pending_amount = totals["pending_amount"]
    db.add(patient)
    db.flush()

    if before != (totals["total_cost"], totals["pending_amount"]):
        logger.debug(
            "patient_id=%s balances total_cost %s -> %s pending %s -> %s",
            patient.id, before[0], totals["total_cost"], before[1],
            totals["pending_amount"])
    return totals
