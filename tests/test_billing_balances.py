"""Tests for the patient balance accumulator."""

from decimal import Decimal
from types import SimpleNamespace

from clinic_billing.models import BillStatus, Payment, PaymentStatus, PayMode
from clinic_billing.services.billing_balances import (
    compute_patient_balances,
    ledger_totals,
    recalc_patient_balances,
)
from clinic_billing.services.billing_service import generate_or_update_bill


def _b(total, status=BillStatus.PENDING):
    return SimpleNamespace(total_amount=Decimal(total), status=status)


def _p(amount, status=PaymentStatus.COMPLETED):
    return SimpleNamespace(amount=Decimal(amount), status=status)


class TestComputePatientBalances:
    def test_empty_ledger(self):
        out = compute_patient_balances([], [])
        assert out == {
            "total_cost": Decimal("0.00"),
            "paid": Decimal("0.00"),
            "pending_amount": Decimal("0.00"),
            "credit": Decimal("0.00"),
        }

    def test_only_completed_payments_count(self):
        out = compute_patient_balances(
            [_b("100"), _b("200", BillStatus.PAID)],
            [
                _p("50"),
                _p("70", PaymentStatus.FAILED),
                _p("30", PaymentStatus.REFUNDED),
            ],
        )
        assert out["total_cost"] == Decimal("300.00")
        assert out["paid"] == Decimal("50.00")
        assert out["pending_amount"] == Decimal("250.00")

    def test_cancelled_bills_excluded(self):
        out = compute_patient_balances([_b("100"), _b("80", BillStatus.CANCELLED)], [])
        assert out["total_cost"] == Decimal("100.00")

    def test_pending_floored_at_zero(self):
        out = compute_patient_balances([_b("100")], [_p("400")])
        assert out["pending_amount"] == Decimal("0.00")
        assert out["credit"] == Decimal("300.00")

    def test_cancelled_paid_bill_leaves_visible_credit(self):
        out = compute_patient_balances(
            [_b("100", BillStatus.CANCELLED), _b("40")], [_p("100")])
        assert out["total_cost"] == Decimal("40.00")
        assert out["pending_amount"] == Decimal("0.00")
        assert out["credit"] == Decimal("60.00")

    def test_accepts_plain_string_statuses(self):
        out = compute_patient_balances(
            [SimpleNamespace(total_amount="10", status="PENDING")],
            [SimpleNamespace(amount="4", status="COMPLETED")],
        )
        assert out["pending_amount"] == Decimal("6.00")


class TestRecalcPatientBalances:
    def test_matches_pure_computation(self, db, make_patient):
        patient = make_patient()
        generate_or_update_bill(db, patient_id=patient.id,
                                items=[{"item": "A", "amount": 120}], paid_amount=20)
        generate_or_update_bill(db, patient_id=patient.id,
                                items=[{"item": "B", "amount": 80}])

        db.refresh(patient)
        pure = compute_patient_balances(patient.bills, patient.payments)
        assert ledger_totals(db, patient.id) == pure
        assert patient.total_cost == pure["total_cost"]
        assert patient.pending_amount == pure["pending_amount"] == Decimal("180.00")

    def test_idempotent(self, db, make_patient):
        patient = make_patient()
        generate_or_update_bill(db, patient_id=patient.id,
                                items=[{"item": "A", "amount": 99.99}], paid_amount=9.99)

        first = recalc_patient_balances(db, patient)
        second = recalc_patient_balances(db, patient)
        db.commit()
        assert first == second
        db.refresh(patient)
        assert (patient.total_cost, patient.pending_amount) == (
            Decimal("99.99"), Decimal("90.00"))

    def test_repairs_drifted_aggregate(self, db, make_patient):
        patient = make_patient()
        generate_or_update_bill(db, patient_id=patient.id,
                                items=[{"item": "A", "amount": 50}])

        # a failed attempt is on the ledger but never counts
        db.add(Payment(patient_id=patient.id, amount=Decimal("50"), mode=PayMode.CARD,
                       status=PaymentStatus.FAILED))
        patient.pending_amount = Decimal("0")
        patient.total_cost = Decimal("999")
        db.commit()

        recalc_patient_balances(db, patient)
        db.commit()
        db.refresh(patient)
        assert (patient.total_cost, patient.pending_amount) == (
            Decimal("50.00"), Decimal("50.00"))
