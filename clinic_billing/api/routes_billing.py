# FILE: clinic_billing/api/routes_billing.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from clinic_billing.api.deps import get_db
from clinic_billing.api.response import ok
from clinic_billing.models.billing import BillStatus, SubmissionKind
from clinic_billing.schemas.billing import (
    BillOut,
    BillResultOut,
    BillSubmitIn,
    InvoiceOut,
    PaymentOut,
    PendingPaymentIn,
)
from clinic_billing.services.billing_service import (
    cancel_bill,
    generate_or_update_bill,
    get_bill,
    get_patient,
    list_bills,
    list_payments,
    pay_pending_balance,
    render_invoice,
)
from clinic_billing.services.pdfs.invoice_document import render_invoice_pdf

router = APIRouter(tags=["Billing"])


def _submit(db: Session, patient_id: int, inp: BillSubmitIn,
            bill_id: Optional[int], kind: Optional[SubmissionKind]):
    result = generate_or_update_bill(
        db,
        patient_id=patient_id,
        items=[it.model_dump() for it in inp.items],
        notes=inp.notes,
        paid_amount=inp.paid_amount,
        bill_id=bill_id,
        kind=kind,
        mode=inp.mode,
        issue_date=inp.issue_date,
    )
    created = result.kind != SubmissionKind.EDIT_BILL
    return ok(BillResultOut.model_validate(result),
              status_code=201 if created else 200)


# ---------- per patient ----------
@router.get("/patients/{patient_id}/bills")
def patient_bills(patient_id: int, db: Session = Depends(get_db)):
    patient = get_patient(db, patient_id)
    rows = list_bills(db, patient_id=patient.id)
    return ok([BillOut.model_validate(b) for b in rows])


@router.post("/patients/{patient_id}/bills")
def generate_bill(
        patient_id: int,
        inp: BillSubmitIn = Body(...),
        db: Session = Depends(get_db),
):
    return _submit(db, patient_id, inp, inp.bill_id, inp.kind)


@router.put("/patients/{patient_id}/bills/{bill_id}")
def edit_bill(
        patient_id: int,
        bill_id: int,
        inp: BillSubmitIn = Body(...),
        db: Session = Depends(get_db),
):
    return _submit(db, patient_id, inp, bill_id, SubmissionKind.EDIT_BILL)


@router.get("/patients/{patient_id}/bills/{bill_id}")
def bill_detail(patient_id: int, bill_id: int, db: Session = Depends(get_db)):
    return ok(BillOut.model_validate(get_bill(db, patient_id, bill_id)))


@router.post("/patients/{patient_id}/bills/{bill_id}/cancel")
def bill_cancel(patient_id: int, bill_id: int, db: Session = Depends(get_db)):
    bill = cancel_bill(db, patient_id=patient_id, bill_id=bill_id)
    return ok(BillOut.model_validate(bill))


@router.get("/patients/{patient_id}/bills/{bill_id}/invoice")
def bill_invoice(patient_id: int, bill_id: int, db: Session = Depends(get_db)):
    doc = render_invoice(db, patient_id=patient_id, bill_id=bill_id)
    return ok(InvoiceOut.model_validate(doc.as_dict()))


@router.get("/patients/{patient_id}/bills/{bill_id}/invoice.pdf")
def bill_invoice_pdf(patient_id: int,
                     bill_id: int,
                     db: Session = Depends(get_db)):
    doc = render_invoice(db, patient_id=patient_id, bill_id=bill_id)
    pdf = render_invoice_pdf(doc)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="{doc.filename}"'
        },
    )


@router.post("/patients/{patient_id}/payments")
def pay_pending(
        patient_id: int,
        inp: PendingPaymentIn = Body(...),
        db: Session = Depends(get_db),
):
    payment = pay_pending_balance(
        db,
        patient_id=patient_id,
        amount=inp.amount,
        mode=inp.mode,
        reference_no=inp.reference_no,
        notes=inp.notes,
    )
    return ok(PaymentOut.model_validate(payment), status_code=201)


# ---------- lists ----------
@router.get("/bills")
def bills_list(
        status: Optional[BillStatus] = Query(default=None),
        db: Session = Depends(get_db),
):
    rows = list_bills(db, status=status)
    return ok([BillOut.model_validate(b) for b in rows],
              meta={"count": len(rows)})


@router.get("/payments")
def payments_list(
        patient_id: Optional[int] = Query(default=None),
        db: Session = Depends(get_db),
):
    rows = list_payments(db, patient_id=patient_id)
    return ok([PaymentOut.model_validate(p) for p in rows],
              meta={"count": len(rows)})
