# clinic_billing/api/router.py
from fastapi import APIRouter

from clinic_billing.api import routes_billing, routes_dashboard, routes_patients

api_router = APIRouter()

api_router.include_router(routes_patients.router)
api_router.include_router(routes_billing.router)
api_router.include_router(routes_dashboard.router)
