# FILE: clinic_billing/services/dashboard_service.py
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from clinic_billing.models.billing import Bill, BillStatus, Payment, PaymentStatus
from clinic_billing.models.patient import Patient
from clinic_billing.services.billing_math import money2


def _month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def _last_months(today: date, n: int) -> List[str]:
    y, m = today.year, today.month
    out = []
    for _ in range(max(1, n)):
        out.append(f"{y:04d}-{m:02d}")
        m -= 1
        if m == 0:
            y, m = y - 1, 12
    return list(reversed(out))


def dashboard_summary(db: Session,
                      *,
                      months: int = 6,
                      today: Optional[date] = None) -> Dict[str, Any]:
    today = today or datetime.utcnow().date()

    total_patients = db.query(func.count(Patient.id)).scalar() or 0
    revenue = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(
        Payment.status == PaymentStatus.COMPLETED).scalar()
    pending = db.query(func.coalesce(func.sum(Patient.pending_amount),
                                     0)).scalar()
    billed = db.query(func.coalesce(func.sum(Bill.total_amount), 0)).filter(
        Bill.status != BillStatus.CANCELLED).scalar()

    bill_counts = {s.value: 0 for s in BillStatus}
    for st, cnt in db.query(Bill.status, func.count(Bill.id)).group_by(
            Bill.status).all():
        bill_counts[getattr(st, "value", str(st))] = int(cnt or 0)

    # bucket in python: month extraction differs between sqlite and mysql
    keys = _last_months(today, months)
    buckets: Dict[str, Decimal] = {k: Decimal("0") for k in keys}
    rows = db.query(Payment.paid_at, Payment.amount).filter(
        Payment.status == PaymentStatus.COMPLETED).all()
    for paid_at, amount in rows:
        if paid_at is None:
            continue
        k = _month_key(paid_at)
        if k in buckets:
            buckets[k] += money2(amount)

    return {
        "total_patients": int(total_patients),
        "total_revenue": money2(revenue),
        "total_billed": money2(billed),
        "pending_payments": money2(pending),
        "bills_by_status": bill_counts,
        "monthly_revenue": [{
            "month": k,
            "revenue": money2(v)
        } for k, v in buckets.items()],
    }
