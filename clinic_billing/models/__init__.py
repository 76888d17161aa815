# clinic_billing/models/__init__.py
from .patient import Patient
from .billing import (
    Bill,
    BillItem,
    BillStatus,
    Payment,
    PaymentStatus,
    PayMode,
    SubmissionKind,
)

__all__ = [
    "Patient",
    "Bill",
    "BillItem",
    "BillStatus",
    "Payment",
    "PaymentStatus",
    "PayMode",
    "SubmissionKind",
]
