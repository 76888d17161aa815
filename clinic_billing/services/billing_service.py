# FILE: clinic_billing/services/billing_service.py
"""
Bill reconciliation: turns one bill-form submission into bill, payment and
patient-balance writes.

Write order is fixed: bill (with the patient aggregate) is committed first,
dependent payments second. A payment failure after the bill commit is not
rolled back; it surfaces as PartialFailure so the operator can reconcile.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_billing.core.config import settings
from clinic_billing.models.billing import (
    Bill,
    BillItem,
    BillStatus,
    Payment,
    PaymentStatus,
    PayMode,
    SubmissionKind,
)
from clinic_billing.models.patient import Patient
from clinic_billing.services.billing_balances import (
    ledger_totals,
    recalc_patient_balances,
)
from clinic_billing.services.billing_errors import (
    ConflictError,
    EmptyBill,
    InvalidAmount,
    NotFoundError,
    NothingPending,
    PartialFailure,
    PersistenceError,
    ValidationError,
)
from clinic_billing.services.billing_math import money2, parse_amount
from clinic_billing.services.invoice_ledger import InvoiceLedger, LineItem
from clinic_billing.services.pdfs.invoice_document import (
    InvoiceDocument,
    build_invoice_document,
)

logger = logging.getLogger(__name__)

ItemsIn = Union[InvoiceLedger, Iterable[Union[LineItem, dict]]]


@dataclass(frozen=True)
class Settlement:
    status: BillStatus
    linked_amount: Decimal
    excess_amount: Decimal
    unapplied_amount: Decimal = Decimal("0.00")


@dataclass
class BillResult:
    kind: SubmissionKind
    bill: Optional[Bill] = None
    payment: Optional[Payment] = None
    excess_payment: Optional[Payment] = None
    # handed back at the desk, never stored as credit
    unapplied_amount: Decimal = Decimal("0.00")


# ----------------------------
# pure rules
# ----------------------------
def derive_bill_status(total_amount, paid_amount) -> BillStatus:
    if money2(paid_amount) >= money2(total_amount):
        return BillStatus.PAID
    return BillStatus.PENDING


def settle(total_amount, paid_amount, prior_pending=None) -> Settlement:
    """
    Split what is paid at submission between the bill itself and any excess.

    The excess is booked as a standalone payment against older pending bills,
    up to prior_pending. Whatever is left is unapplied: it is not recorded,
    so it can never sit on the ledger as credit against a later bill.
    prior_pending=None leaves the excess uncapped.
    """
    total = money2(total_amount)
    paid = money2(paid_amount)
    linked = min(paid, total)
    over = paid - linked
    excess = over if prior_pending is None else min(over, money2(prior_pending))
    return Settlement(
        status=derive_bill_status(total, paid),
        linked_amount=money2(linked),
        excess_amount=money2(excess),
        unapplied_amount=money2(over - excess),
    )


def infer_submission_kind(bill_id: Optional[int], total_amount,
                          paid_amount) -> SubmissionKind:
    """Legacy inference for callers that do not send an explicit kind."""
    if bill_id:
        return SubmissionKind.EDIT_BILL
    if money2(total_amount) == 0 and money2(paid_amount) > 0:
        return SubmissionKind.STANDALONE_PAYMENT
    return SubmissionKind.NEW_BILL


def check_bill_notes(notes: Optional[str]) -> None:
    """Notes are optional, but when given they must be a real description."""
    text = (notes or "").strip()
    min_len = settings.BILL_NOTES_MIN_LENGTH
    if text and len(text) < min_len:
        raise ValidationError(
            f"Description must be at least {min_len} characters",
            details={"notes": text})


def _as_ledger(items: ItemsIn) -> InvoiceLedger:
    if isinstance(items, InvoiceLedger):
        return items
    rows: List[LineItem] = []
    for it in items or []:
        if isinstance(it, LineItem):
            rows.append(it)
        elif isinstance(it, dict):
            rows.extend(InvoiceLedger.from_dicts([it]).items)
        else:
            rows.append(
                LineItem(
                    label=str(getattr(it, "label", "") or ""),
                    description=str(getattr(it, "description", "") or ""),
                    amount=getattr(it, "amount", 0),
                ))
    return InvoiceLedger(rows)


# ----------------------------
# store helpers
# ----------------------------
def get_patient(db: Session, patient_id: int, *, lock: bool = False) -> Patient:
    q = db.query(Patient).filter(Patient.id == int(patient_id))
    if lock:
        q = q.with_for_update()
    patient = q.first()
    if not patient:
        raise NotFoundError("Patient not found", details={"patient_id": patient_id})
    return patient


def get_bill(db: Session, patient_id: int, bill_id: int) -> Bill:
    bill = (db.query(Bill).filter(Bill.id == int(bill_id)).filter(
        Bill.patient_id == int(patient_id)).first())
    if not bill:
        raise NotFoundError("Bill not found",
                            details={
                                "patient_id": patient_id,
                                "bill_id": bill_id
                            })
    return bill


def _commit(db: Session, what: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Commit failed while writing %s", what)
        raise PersistenceError(f"Could not save {what}") from e


def _new_payment(patient: Patient,
                 amount: Decimal,
                 mode: PayMode,
                 *,
                 bill: Optional[Bill] = None,
                 notes: Optional[str] = None,
                 reference_no: Optional[str] = None) -> Payment:
    return Payment(
        patient_id=patient.id,
        bill_id=bill.id if bill is not None else None,
        amount=money2(amount),
        mode=mode,
        status=PaymentStatus.COMPLETED,
        reference_no=reference_no or None,
        notes=notes or None,
        paid_at=datetime.utcnow(),
    )


def _write_bill_items(bill: Bill, items: List[LineItem]) -> None:
    bill.items.clear()
    for seq, it in enumerate(items, start=1):
        bill.items.append(
            BillItem(
                seq=seq,
                label=it.label,
                description=it.description,
                amount=money2(it.amount),
            ))


# ----------------------------
# operations
# ----------------------------
def generate_or_update_bill(
    db: Session,
    *,
    patient_id: int,
    items: ItemsIn,
    notes: Optional[str] = None,
    paid_amount: Any = 0,
    bill_id: Optional[int] = None,
    kind: Optional[SubmissionKind] = None,
    mode: PayMode = PayMode.CASH,
    issue_date: Optional[datetime] = None,
) -> BillResult:
    paid = parse_amount(paid_amount, field="paid_amount")
    ledger = _as_ledger(items)

    if kind is None:
        kind = infer_submission_kind(bill_id, ledger.total(), paid)
    kind = SubmissionKind(kind)

    if kind == SubmissionKind.STANDALONE_PAYMENT:
        if bill_id:
            raise ValidationError("A standalone payment cannot reference a bill")
        if any(it.amount > 0 for it in ledger.billable_items()):
            raise ValidationError(
                "A standalone payment cannot carry billable items")
        patient = get_patient(db, patient_id, lock=True)
        payment = _record_standalone_payment(db, patient, paid, mode, notes=notes)
        return BillResult(kind=kind, payment=payment)

    check_bill_notes(notes)

    if kind == SubmissionKind.EDIT_BILL:
        if not bill_id:
            raise ValidationError("bill_id is required to edit a bill")
        bill = _edit_bill(db,
                          patient_id=patient_id,
                          bill_id=bill_id,
                          ledger=ledger,
                          notes=notes,
                          paid=paid)
        return BillResult(kind=kind, bill=bill)

    if bill_id:
        raise ValidationError("A new bill cannot carry a bill_id")
    return _create_bill(db,
                        patient_id=patient_id,
                        ledger=ledger,
                        notes=notes,
                        paid=paid,
                        mode=mode,
                        issue_date=issue_date)


def _create_bill(db: Session, *, patient_id: int, ledger: InvoiceLedger,
                 notes: Optional[str], paid: Decimal, mode: PayMode,
                 issue_date: Optional[datetime]) -> BillResult:
    billable = ledger.billable_items()
    if not billable:
        raise EmptyBill("Add at least one bill item")

    total = money2(sum((it.amount for it in billable), Decimal("0")))

    patient = get_patient(db, patient_id, lock=True)
    prior_pending = ledger_totals(db, patient.id)["pending_amount"]
    s = settle(total, paid, prior_pending)
    if s.unapplied_amount > 0:
        logger.warning(
            "Overpayment not recorded patient_id=%s paid=%s total=%s "
            "prior_pending=%s unapplied=%s", patient.id, paid, total,
            prior_pending, s.unapplied_amount)

    # 1) bill + aggregate
    bill = Bill(
        patient_id=patient.id,
        total_amount=total,
        status=s.status,
        issue_date=issue_date or datetime.utcnow(),
        notes=(notes or "").strip() or None,
        services_summary=ledger.services_summary(),
    )
    _write_bill_items(bill, billable)
    db.add(bill)
    try:
        db.flush()
        recalc_patient_balances(db, patient)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Bill write failed patient_id=%s", patient_id)
        raise PersistenceError("Could not save bill") from e
    _commit(db, "bill")
    db.refresh(bill)
    logger.info("Bill created bill_id=%s patient_id=%s total=%s status=%s",
                bill.id, patient.id, total, s.status.value)

    result = BillResult(kind=SubmissionKind.NEW_BILL,
                        bill=bill,
                        unapplied_amount=s.unapplied_amount)
    if s.linked_amount <= 0 and s.excess_amount <= 0:
        return result

    # 2) payments; the bill above stays even if this fails
    saved_bill_id = int(bill.id)
    invoice_number = bill.invoice_number
    try:
        # the commit above released the row lock
        patient = get_patient(db, patient_id, lock=True)
        if s.linked_amount > 0:
            result.payment = _new_payment(patient,
                                          s.linked_amount,
                                          mode,
                                          bill=bill)
            db.add(result.payment)
        if s.excess_amount > 0:
            result.excess_payment = _new_payment(
                patient,
                s.excess_amount,
                mode,
                notes=f"Paid in excess of {invoice_number}")
            db.add(result.excess_payment)
        db.flush()
        recalc_patient_balances(db, patient)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(
            "PARTIAL_FAILURE bill saved but payment missing: "
            "patient_id=%s bill_id=%s linked=%s excess=%s",
            patient_id, saved_bill_id, s.linked_amount, s.excess_amount)
        raise PartialFailure(
            f"Bill {invoice_number} was saved but its payment was not "
            "recorded; record the payment again",
            bill_id=saved_bill_id,
        ) from e

    for p in (result.payment, result.excess_payment):
        if p is not None:
            db.refresh(p)
    db.refresh(bill)
    logger.info("Payment recorded for bill_id=%s linked=%s excess=%s",
                bill.id, s.linked_amount, s.excess_amount)
    return result


def _edit_bill(db: Session, *, patient_id: int, bill_id: int,
               ledger: InvoiceLedger, notes: Optional[str],
               paid: Decimal) -> Bill:
    billable = ledger.billable_items()
    if not billable:
        raise EmptyBill("Add at least one bill item")

    patient = get_patient(db, patient_id, lock=True)
    bill = get_bill(db, patient.id, bill_id)
    if bill.status == BillStatus.CANCELLED:
        raise ConflictError(f"Bill {bill.invoice_number} is cancelled")

    old_total = money2(bill.total_amount)
    total = money2(sum((it.amount for it in billable), Decimal("0")))

    _write_bill_items(bill, billable)
    bill.total_amount = total
    bill.services_summary = ledger.services_summary()
    bill.status = derive_bill_status(total, paid)
    if notes is not None:
        bill.notes = notes.strip() or None
    db.add(bill)
    try:
        db.flush()
        recalc_patient_balances(db, patient)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Bill edit failed bill_id=%s", bill_id)
        raise PersistenceError("Could not save bill") from e
    _commit(db, "bill")
    db.refresh(bill)
    logger.info("Bill edited bill_id=%s total %s -> %s status=%s", bill.id,
                old_total, total, bill.status.value)
    return bill


def _record_standalone_payment(db: Session,
                               patient: Patient,
                               amount: Decimal,
                               mode: PayMode,
                               *,
                               notes: Optional[str] = None,
                               reference_no: Optional[str] = None) -> Payment:
    """
    Payment with no bill, applied to the patient's pending balance.
    Only what is owed is recorded; the rest is not kept as credit.
    """
    if amount <= 0:
        raise InvalidAmount("Payment amount must be > 0")

    pending = ledger_totals(db, patient.id)["pending_amount"]
    if pending <= 0:
        raise NothingPending("Patient has no pending balance",
                             details={"patient_id": patient.id})
    applied = min(amount, pending)
    if applied < amount:
        logger.warning(
            "Payment exceeds pending balance patient_id=%s amount=%s "
            "pending=%s unapplied=%s", patient.id, amount, pending,
            amount - applied)

    payment = _new_payment(patient,
                           applied,
                           mode,
                           notes=notes,
                           reference_no=reference_no)
    db.add(payment)
    try:
        db.flush()
        recalc_patient_balances(db, patient)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Payment write failed patient_id=%s", patient.id)
        raise PersistenceError("Could not save payment") from e
    _commit(db, "payment")
    db.refresh(payment)
    logger.info("Standalone payment payment_id=%s patient_id=%s amount=%s",
                payment.id, patient.id, payment.amount)
    return payment


def pay_pending_balance(
    db: Session,
    *,
    patient_id: int,
    amount: Any,
    mode: PayMode = PayMode.CASH,
    reference_no: Optional[str] = None,
    notes: Optional[str] = None,
) -> Payment:
    amt = parse_amount(amount, field="amount")
    if amt <= 0:
        raise InvalidAmount("Payment amount must be > 0")

    patient = get_patient(db, patient_id, lock=True)
    return _record_standalone_payment(db,
                                      patient,
                                      amt,
                                      mode,
                                      notes=notes,
                                      reference_no=reference_no)


def cancel_bill(db: Session, *, patient_id: int, bill_id: int) -> Bill:
    patient = get_patient(db, patient_id, lock=True)
    bill = get_bill(db, patient.id, bill_id)
    if bill.status == BillStatus.CANCELLED:
        return bill

    bill.status = BillStatus.CANCELLED
    bill.cancelled_at = datetime.utcnow()
    db.add(bill)
    try:
        db.flush()
        recalc_patient_balances(db, patient)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Bill cancel failed bill_id=%s", bill_id)
        raise PersistenceError("Could not cancel bill") from e
    _commit(db, "bill")
    db.refresh(bill)
    logger.info("Bill cancelled bill_id=%s patient_id=%s", bill.id, patient.id)
    return bill


def list_bills(db: Session,
               *,
               patient_id: Optional[int] = None,
               status: Optional[BillStatus] = None) -> List[Bill]:
    q = db.query(Bill)
    if patient_id is not None:
        q = q.filter(Bill.patient_id == int(patient_id))
    if status is not None:
        q = q.filter(Bill.status == BillStatus(status))
    return q.order_by(Bill.issue_date.desc(), Bill.id.desc()).all()


def list_payments(db: Session, *, patient_id: Optional[int] = None) -> List[Payment]:
    q = db.query(Payment)
    if patient_id is not None:
        q = q.filter(Payment.patient_id == int(patient_id))
    return q.order_by(Payment.paid_at.desc(), Payment.id.desc()).all()


def render_invoice(db: Session, *, patient_id: int, bill_id: int) -> InvoiceDocument:
    patient = get_patient(db, patient_id)
    bill = get_bill(db, patient.id, bill_id)
    return build_invoice_document(patient, bill, bill.items, bill.notes)
