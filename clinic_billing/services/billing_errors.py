# FILE: clinic_billing/services/billing_errors.py
from __future__ import annotations

from typing import Any, Optional


class BillingError(Exception):
    """Base for every error the billing services raise to the API layer."""

    status_code = 400
    code = "BILLING_ERROR"

    def __init__(self, msg: str, *, details: Any = None) -> None:
        super().__init__(msg)
        self.msg = msg
        self.details = details


# ---------- rejected before any write ----------
class ValidationError(BillingError):
    status_code = 422
    code = "VALIDATION_ERROR"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class EmptyBill(ValidationError):
    code = "EMPTY_BILL"


class OutOfRange(ValidationError):
    code = "OUT_OF_RANGE"


class ConflictError(BillingError):
    status_code = 409
    code = "CONFLICT"


class NothingPending(ConflictError):
    code = "NOTHING_PENDING"


class NotFoundError(BillingError):
    status_code = 404
    code = "NOT_FOUND"


# ---------- store failures ----------
class PersistenceError(BillingError):
    status_code = 503
    code = "PERSISTENCE_ERROR"


class PartialFailure(PersistenceError):
    """Bill committed, dependent payment write failed. Needs manual reconcile."""

    status_code = 502
    code = "PARTIAL_FAILURE"

    def __init__(self,
                 msg: str,
                 *,
                 bill_id: int,
                 details: Optional[Any] = None) -> None:
        super().__init__(msg, details=details or {"bill_id": bill_id})
        self.bill_id = bill_id
