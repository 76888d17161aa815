# clinic_billing/api/routes_dashboard.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinic_billing.api.deps import get_db
from clinic_billing.api.response import ok
from clinic_billing.services.dashboard_service import dashboard_summary

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("/summary")
def summary(
        months: int = Query(default=6, ge=1, le=24),
        db: Session = Depends(get_db),
):
    return ok(dashboard_summary(db, months=months))
