# FILE: clinic_billing/api/routes_patients.py
from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query
from sqlalchemy.orm import Session

from clinic_billing.api.deps import get_db
from clinic_billing.api.response import ok
from clinic_billing.schemas.patient import (
    PatientBalancesOut,
    PatientCreate,
    PatientDetailOut,
    PatientFilter,
    PatientOut,
)
from clinic_billing.services.billing_balances import (
    ledger_totals,
    recalc_patient_balances,
)
from clinic_billing.services.billing_service import get_patient
from clinic_billing.services.patient_service import (
    create_patient,
    list_patients,
    next_actions,
)

router = APIRouter(prefix="/patients", tags=["Patients"])


def _detail(db: Session, patient) -> PatientDetailOut:
    actions = next_actions(patient)
    return PatientDetailOut.model_validate(patient).model_copy(
        update={
            "has_pending": "pay_pending" in actions,
            "credit": ledger_totals(db, patient.id)["credit"],
            "actions": actions,
        })


@router.post("")
def add_patient(
        inp: PatientCreate = Body(...),
        db: Session = Depends(get_db),
):
    patient = create_patient(db, inp)
    return ok(PatientOut.model_validate(patient), status_code=201)


@router.get("")
def patients_list(
        q: str = Query(default="", max_length=120),
        status: PatientFilter = Query(default=PatientFilter.ALL),
        db: Session = Depends(get_db),
):
    rows = list_patients(db, q=q, status=status)
    return ok([PatientOut.model_validate(p) for p in rows],
              meta={"count": len(rows)})


@router.get("/{patient_id}")
def patient_detail(patient_id: int, db: Session = Depends(get_db)):
    return ok(_detail(db, get_patient(db, patient_id)))


@router.post("/{patient_id}/recalculate")
def patient_recalculate(patient_id: int, db: Session = Depends(get_db)):
    patient = get_patient(db, patient_id, lock=True)
    totals = recalc_patient_balances(db, patient)
    db.commit()
    return ok(PatientBalancesOut(patient_id=patient_id, **totals))
