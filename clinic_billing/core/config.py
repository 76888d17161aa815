# clinic_billing/core/config.py
import os
from decimal import Decimal
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


class Settings(BaseModel):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Clinic Front Office")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api")

    # CORS (env takes priority)
    BACKEND_CORS_ORIGINS: List[str] = _split_csv(
        os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ))

    # ---------- Database ----------
    DATABASE_URL: str = os.getenv("DATABASE_URL",
                                  "sqlite:///./clinic_billing.db")
    DB_ECHO: bool = os.getenv("DB_ECHO",
                              "false").lower() in {"1", "true", "yes"}

    # ---------- Logging ----------
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # ---------- Billing ----------
    BILLING_TAX_RATE: Decimal = Decimal(
        os.getenv("BILLING_TAX_RATE", "0.09") or "0.09")
    INVOICE_DUE_DAYS: int = int(os.getenv("INVOICE_DUE_DAYS", "30"))
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "$")
    BILL_NOTES_MIN_LENGTH: int = int(os.getenv("BILL_NOTES_MIN_LENGTH", "10"))

    # ---------- Invoice identity (issuer / footer blocks) ----------
    CLINIC_NAME: str = os.getenv("CLINIC_NAME", "Concordia Hill Hospital")
    CLINIC_WEBSITE: str = os.getenv("CLINIC_WEBSITE", "www.concordiahill.com")
    CLINIC_EMAIL: str = os.getenv("CLINIC_EMAIL",
                                  "invoices@concordiahill.com")
    PHYSICIAN_NAME: str = os.getenv("PHYSICIAN_NAME", "Dr. Sarah Johnson")
    PHYSICIAN_PHONE: str = os.getenv("PHYSICIAN_PHONE", "(555) 123-4567")
    PHYSICIAN_ADDRESS_LINE1: str = os.getenv("PHYSICIAN_ADDRESS_LINE1",
                                             "123 Medical Center Drive")
    PHYSICIAN_ADDRESS_LINE2: str = os.getenv("PHYSICIAN_ADDRESS_LINE2",
                                             "New York, NY 10001")


settings = Settings()
