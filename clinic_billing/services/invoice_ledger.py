# FILE: clinic_billing/services/invoice_ledger.py
from __future__ import annotations

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from clinic_billing.services.billing_errors import (
    InvalidAmount,
    OutOfRange,
    ValidationError,
)
from clinic_billing.services.billing_math import (
    D,
    MAX_AMOUNT,
    as_decimal,
    check_amount_limit,
    money2,
)

# "item" is the label's name on the front-office form
_FIELD_ALIASES = {"item": "label"}
_FIELDS = ("label", "description", "amount")


@dataclass(frozen=True)
class LineItem:
    label: str = ""
    description: str = ""
    # raw form input; may be "", None or junk while the draft is edited
    amount: Any = 0

    @property
    def amount_value(self) -> Decimal:
        v = D(self.amount)
        return v if v > 0 else Decimal("0")

    @property
    def is_blank(self) -> bool:
        return not str(self.label or "").strip()


class InvoiceLedger:
    """
    Ordered line items of one bill draft.

    total() and services_summary() are recomputed from the items on every
    read so they can never disagree with the items.
    """

    def __init__(self, items: Optional[Iterable[LineItem]] = None) -> None:
        self._items: List[LineItem] = list(items or [])
        if not self._items:
            self._items.append(LineItem())

    @classmethod
    def from_dicts(cls, rows: Iterable[dict]) -> "InvoiceLedger":
        items = []
        for r in rows or []:
            label = r.get("label", r.get("item", ""))
            items.append(
                LineItem(
                    label=str(label or ""),
                    description=str(r.get("description") or ""),
                    amount=r.get("amount", 0),
                ))
        return cls(items)

    @property
    def items(self) -> List[LineItem]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def add_item(self) -> LineItem:
        item = LineItem()
        self._items.append(item)
        return item

    def remove_item(self, index: int) -> None:
        if len(self._items) <= 1:
            return
        if index < 0 or index >= len(self._items):
            return
        del self._items[index]

    def update_item(self, index: int, field: str, value: Any) -> LineItem:
        if index < 0 or index >= len(self._items):
            raise OutOfRange(
                f"Item index {index} out of range (0..{len(self._items) - 1})",
                details={"index": index})
        name = _FIELD_ALIASES.get(field, field)
        if name not in _FIELDS:
            raise ValidationError(f"Unknown item field: {field}")
        if name != "amount":
            value = "" if value is None else str(value)
        item = replace(self._items[index], **{name: value})
        self._items[index] = item
        return item

    def total(self) -> Decimal:
        return money2(
            sum((it.amount_value for it in self._items), Decimal("0")))

    def services_summary(self) -> str:
        return ", ".join(
            str(it.label).strip() for it in self._items if not it.is_blank)

    def billable_items(self) -> List[LineItem]:
        """
        Labelled items with amounts normalized to 2dp Decimals.
        A negative or oversized amount is rejected rather than clamped, and so
        is an amount on an unlabelled row, so the sum of the returned items
        always equals total().
        """
        out: List[LineItem] = []
        for idx, it in enumerate(self._items):
            raw = as_decimal(it.amount)
            if it.is_blank:
                if raw is not None and raw != 0:
                    raise ValidationError("Item name is required when an amount is set",
                                          details={"index": idx})
                continue
            label = str(it.label).strip()
            if raw is not None and raw < 0:
                raise InvalidAmount(f"Item '{label}' has a negative amount",
                                    details={"index": idx})
            if raw is not None and raw > MAX_AMOUNT:
                raise InvalidAmount(
                    f"Item '{label}' cannot exceed {MAX_AMOUNT}",
                    details={"index": idx})
            out.append(
                LineItem(
                    label=label,
                    description=str(it.description or "").strip(),
                    amount=money2(it.amount_value),
                ))

        check_amount_limit(sum((it.amount for it in out), Decimal("0")),
                           field="bill total")
        return out
