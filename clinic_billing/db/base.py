# clinic_billing/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All clinic tables (patients, bills, bill items, payments) inherit from this."""
    pass
