# FILE: clinic_billing/services/patient_service.py
from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_billing.models.patient import Patient
from clinic_billing.schemas.patient import PatientCreate, PatientFilter
from clinic_billing.services.billing_errors import ConflictError, PersistenceError
from clinic_billing.services.billing_math import money2

logger = logging.getLogger(__name__)


def _duplicate_field(db: Session, phone: str, email: str) -> Optional[str]:
    if db.query(Patient.id).filter(Patient.phone == phone).first():
        return "phone"
    if db.query(Patient.id).filter(
            func.lower(Patient.email) == email.lower()).first():
        return "email"
    return None


def create_patient(db: Session, inp: PatientCreate) -> Patient:
    dup = _duplicate_field(db, inp.phone, inp.email)
    if dup:
        raise ConflictError(f"A patient with this {dup} already exists",
                            details={"field": dup})

    patient = Patient(
        name=inp.name,
        phone=inp.phone,
        email=inp.email,
        address=inp.address,
        services=list(inp.services),
        prescription=inp.prescription or None,
        visit_date=datetime.utcnow(),
        total_cost=Decimal("0.00"),
        pending_amount=Decimal("0.00"),
    )
    db.add(patient)
    try:
        db.commit()
    except IntegrityError as e:
        # lost a race with another insert of the same phone/email
        db.rollback()
        raise ConflictError("A patient with this phone or email already exists") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Patient insert failed phone=%s", inp.phone)
        raise PersistenceError("Could not save patient") from e
    db.refresh(patient)
    logger.info("Patient created patient_id=%s", patient.id)
    return patient


def list_patients(db: Session,
                  *,
                  q: Optional[str] = None,
                  status: PatientFilter = PatientFilter.ALL) -> List[Patient]:
    query = db.query(Patient)

    term = (q or "").strip()
    if term:
        like = f"%{term.lower()}%"
        query = query.filter(
            or_(
                func.lower(Patient.name).like(like),
                func.lower(Patient.email).like(like),
                Patient.phone.like(f"%{term}%"),
            ))

    if status == PatientFilter.PENDING:
        query = query.filter(Patient.pending_amount > 0)
    elif status == PatientFilter.PAID:
        query = query.filter(Patient.pending_amount == 0)

    return query.order_by(Patient.visit_date.desc(), Patient.id.desc()).all()


def next_actions(patient: Patient) -> List[str]:
    """
    Operator choices for a patient. create_bill and pay_pending go to
    different endpoints, so one submission can only ever take one path.
    """
    actions = ["create_bill"]
    if money2(patient.pending_amount) > 0:
        actions.append("pay_pending")
    return actions
