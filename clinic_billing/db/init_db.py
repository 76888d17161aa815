# clinic_billing/db/init_db.py
from __future__ import annotations

import argparse
import logging
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from clinic_billing.db.base import Base
from clinic_billing.db.session import engine as default_engine

# Import all models so metadata is complete
from clinic_billing.models import Bill, BillItem, Patient, Payment  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    """
    Create any missing tables; safe to run multiple times.
    """
    eng = bind or default_engine
    Base.metadata.create_all(bind=eng)
    names = sorted(inspect(eng).get_table_names())
    logger.info("Database ready, tables: %s", names)


def main() -> None:
    parser = argparse.ArgumentParser(description="Create clinic billing tables")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    init_db()


if __name__ == "__main__":
    main()
