# FILE: clinic_billing/services/pdfs/invoice_document.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO
from typing import Any, Dict, Iterable, List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from clinic_billing.core.config import settings
from clinic_billing.services.billing_errors import ValidationError
from clinic_billing.services.billing_math import D, money2

Q2 = Decimal("0.01")


# ----------------------------
# helpers (safe formatting)
# ----------------------------
def _get(obj: Any, key: str, default=None):
    if isinstance(obj, dict):
        return obj.get(key, default)
    return getattr(obj, key, default)


def _s(v: Any, dash: str = "-") -> str:
    if v is None:
        return dash
    s = str(v).strip()
    return s if s else dash


def _as_date(v: Any) -> date:
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    if isinstance(v, str) and v.strip():
        return datetime.fromisoformat(v.strip()).date()
    raise ValidationError("Bill has no issue date")


def _fmt_date(d: date) -> str:
    return d.strftime("%m/%d/%Y")


@dataclass(frozen=True)
class InvoiceLine:
    label: str
    description: str
    amount: Decimal


@dataclass(frozen=True)
class Party:
    name: str
    phone: str
    address_lines: Tuple[str, ...]
    email: str = ""


@dataclass(frozen=True)
class InvoiceDocument:
    """Everything printed on an invoice, already computed."""

    invoice_number: str
    bill_id: int
    bill_date: date
    due_date: date
    patient: Party
    issuer: Party
    lines: Tuple[InvoiceLine, ...]
    notes: str
    subtotal: Decimal
    tax_rate: Decimal
    tax: Decimal
    total: Decimal
    clinic_name: str = ""
    clinic_website: str = ""
    clinic_email: str = ""
    currency: str = "$"

    @property
    def filename(self) -> str:
        return f"invoice-{self.invoice_number}.pdf"

    @property
    def tax_rate_label(self) -> str:
        pct = (self.tax_rate * 100).normalize()
        return f"{pct:f}%"

    def money(self, v: Decimal) -> str:
        return f"{self.currency}{money2(v):.2f}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "invoice_number": self.invoice_number,
            "bill_id": self.bill_id,
            "bill_date": self.bill_date.isoformat(),
            "due_date": self.due_date.isoformat(),
            "patient": {
                "name": self.patient.name,
                "phone": self.patient.phone,
                "email": self.patient.email,
                "address": ", ".join(self.patient.address_lines),
            },
            "items": [{
                "item": ln.label,
                "description": ln.description,
                "amount": str(ln.amount),
            } for ln in self.lines],
            "notes": self.notes,
            "subtotal": str(self.subtotal),
            "tax_rate": str(self.tax_rate),
            "tax": str(self.tax),
            "total": str(self.total),
            "amount_due": str(self.total),
            "filename": self.filename,
        }


def build_invoice_document(
    patient: Any,
    bill: Any,
    items: Optional[Iterable[Any]] = None,
    notes: Optional[str] = None,
    *,
    tax_rate: Optional[Decimal] = None,
    due_days: Optional[int] = None,
) -> InvoiceDocument:
    """
    Pure: same patient/bill/items/notes in, same document out.

    subtotal = sum(items) and must equal bill.total_amount
    tax      = subtotal * tax_rate (2dp, half-up)
    due date = bill date + due_days
    """
    rate = D(settings.BILLING_TAX_RATE if tax_rate is None else tax_rate)
    days = int(settings.INVOICE_DUE_DAYS if due_days is None else due_days)

    rows = list(items if items is not None else (_get(bill, "items") or []))
    lines: List[InvoiceLine] = []
    for r in rows:
        label = _get(r, "label", None)
        if label is None:
            label = _get(r, "item", "")
        lines.append(
            InvoiceLine(
                label=str(label or "").strip(),
                description=str(_get(r, "description", "") or "").strip(),
                amount=money2(_get(r, "amount", 0)),
            ))
    if not lines:
        raise ValidationError("Invoice needs at least one item")

    subtotal = money2(sum((ln.amount for ln in lines), Decimal("0")))
    bill_total = _get(bill, "total_amount", None)
    if bill_total is not None and money2(bill_total) != subtotal:
        raise ValidationError(
            "Invoice items do not add up to the bill total",
            details={
                "subtotal": str(subtotal),
                "bill_total": str(money2(bill_total))
            })

    tax = (subtotal * rate).quantize(Q2, rounding=ROUND_HALF_UP)
    total = money2(subtotal + tax)

    bill_date = _as_date(_get(bill, "issue_date", None))
    bill_id = int(_get(bill, "id", 0) or 0)
    invoice_number = _get(bill, "invoice_number", None) or f"INV-{bill_id:06d}"

    if notes is None:
        notes = _get(bill, "notes", "")

    address = str(_get(patient, "address", "") or "").strip()
    patient_block = Party(
        name=_s(_get(patient, "name")),
        phone=_s(_get(patient, "phone")),
        address_lines=(address, ) if address else (),
        email=str(_get(patient, "email", "") or "").strip(),
    )
    issuer_block = Party(
        name=settings.PHYSICIAN_NAME,
        phone=settings.PHYSICIAN_PHONE,
        address_lines=tuple(
            x for x in (settings.PHYSICIAN_ADDRESS_LINE1,
                        settings.PHYSICIAN_ADDRESS_LINE2) if x),
    )

    return InvoiceDocument(
        invoice_number=str(invoice_number),
        bill_id=bill_id,
        bill_date=bill_date,
        due_date=bill_date + timedelta(days=days),
        patient=patient_block,
        issuer=issuer_block,
        lines=tuple(lines),
        notes=str(notes or "").strip(),
        subtotal=subtotal,
        tax_rate=rate,
        tax=tax,
        total=total,
        clinic_name=settings.CLINIC_NAME,
        clinic_website=settings.CLINIC_WEBSITE,
        clinic_email=settings.CLINIC_EMAIL,
        currency=settings.CURRENCY_SYMBOL,
    )


# ----------------------------
# PDF layout (A4, fixed)
# ----------------------------
PAGE_W, PAGE_H = A4
MARGIN = 14 * mm
FOOTER_H = 22 * mm
INK = colors.black
MUTED = colors.HexColor("#4B5563")
RULE = colors.HexColor("#E5E7EB")

_COLS = (0.30, 0.40, 0.30)  # item | description | amount


def _draw_footer(c: canvas.Canvas, doc: InvoiceDocument, page_no: int) -> None:
    x0, x1 = MARGIN, PAGE_W - MARGIN
    y = MARGIN + FOOTER_H - 4 * mm

    c.setStrokeColor(RULE)
    c.setLineWidth(0.8)
    c.line(x0, y, x1, y)

    c.setFillColor(INK)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(x0, y - 6 * mm, _s(doc.clinic_name, ""))
    c.setFont("Helvetica", 8.5)
    c.drawString(x0, y - 10.5 * mm, _s(doc.clinic_website, ""))

    c.setFillColor(MUTED)
    c.drawRightString(x1, y - 6 * mm,
                      "For more information or any issues or concerns,")
    c.drawRightString(x1, y - 10.5 * mm, f"email us at {doc.clinic_email}")
    c.drawRightString(x1, MARGIN - 4 * mm, f"Page {page_no}")


def _draw_party(c: canvas.Canvas, x: float, y: float, w: float, title: str,
                party: Party) -> float:
    c.setFillColor(MUTED)
    c.setFont("Helvetica-Bold", 9.5)
    c.drawString(x, y, title)
    y -= 5 * mm

    c.setFillColor(INK)
    c.setFont("Helvetica", 9)
    rows = [party.name, party.phone, *party.address_lines]
    if party.email:
        rows.append(party.email)
    for row in rows:
        for ln in simpleSplit(_s(row), "Helvetica", 9, w) or ["-"]:
            c.drawString(x, y, ln)
            y -= 4.4 * mm
    return y


def _draw_meta_row(c: canvas.Canvas, doc: InvoiceDocument, y: float) -> float:
    cells = [
        ("INVOICE NUMBER", doc.invoice_number),
        ("DATE", _fmt_date(doc.bill_date)),
        ("INVOICE DUE DATE", _fmt_date(doc.due_date)),
        ("AMOUNT DUE", doc.money(doc.total)),
    ]
    w = (PAGE_W - 2 * MARGIN) / len(cells)
    for i, (k, v) in enumerate(cells):
        x = MARGIN + i * w
        c.setFillColor(MUTED)
        c.setFont("Helvetica-Bold", 8.5)
        c.drawString(x, y, k)
        c.setFillColor(INK)
        c.setFont("Helvetica", 9.5)
        c.drawString(x, y - 5 * mm, v)
    return y - 12 * mm


def _col_x() -> Tuple[float, float, float, float]:
    table_w = PAGE_W - 2 * MARGIN
    x1 = MARGIN
    x2 = x1 + table_w * _COLS[0]
    x3 = x2 + table_w * _COLS[1]
    x_end = MARGIN + table_w
    return x1, x2, x3, x_end


def _draw_table_header(c: canvas.Canvas, y: float) -> float:
    x1, x2, _, x_end = _col_x()
    c.setFillColor(INK)
    c.setFont("Helvetica-Bold", 9.5)
    c.drawString(x1, y, "ITEM")
    c.drawString(x2, y, "DESCRIPTION")
    c.drawRightString(x_end, y, "AMOUNT")
    y -= 2.2 * mm
    c.setStrokeColor(RULE)
    c.setLineWidth(0.8)
    c.line(MARGIN, y, x_end, y)
    return y - 5 * mm


def _line_rows(doc: InvoiceDocument, ln: InvoiceLine) -> List[Tuple[str, str, str]]:
    x1, x2, x3, _ = _col_x()
    label_lines = simpleSplit(_s(ln.label), "Helvetica", 9, x2 - x1 - 2 * mm) or [""]
    desc_lines = simpleSplit(_s(ln.description, ""), "Helvetica", 9,
                             x3 - x2 - 2 * mm) or [""]
    n = max(len(label_lines), len(desc_lines))
    out = []
    for i in range(n):
        out.append((
            label_lines[i] if i < len(label_lines) else "",
            desc_lines[i] if i < len(desc_lines) else "",
            doc.money(ln.amount) if i == 0 else "",
        ))
    return out


def render_invoice_pdf(doc: InvoiceDocument) -> bytes:
    """
    Deterministic A4 invoice: invariant mode pins the PDF ids and timestamps,
    so identical documents give identical bytes.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4, invariant=1)
    c.setTitle(f"Invoice {doc.invoice_number}")
    c.setAuthor(_s(doc.clinic_name, ""))
    c.setSubject("Medical billing invoice")

    bottom = MARGIN + FOOTER_H + 4 * mm
    page_no = 1
    y = PAGE_H - MARGIN - 6 * mm

    # header
    c.setFillColor(INK)
    c.setFont("Helvetica-Bold", 20)
    c.drawString(MARGIN, y, "MEDICAL BILLING INVOICE")
    y -= 14 * mm

    # patient + issuer blocks
    half = (PAGE_W - 2 * MARGIN) / 2
    y_left = _draw_party(c, MARGIN, y, half - 6 * mm, "PATIENT INFORMATION",
                         doc.patient)
    y_right = _draw_party(c, MARGIN + half, y, half - 6 * mm,
                          "PRESCRIBING PHYSICIAN'S INFORMATION", doc.issuer)
    y = min(y_left, y_right) - 5 * mm

    y = _draw_meta_row(c, doc, y)
    y = _draw_table_header(c, y)

    # items (continue on a new page when the table overflows)
    x1, x2, _, x_end = _col_x()
    for ln in doc.lines:
        for label, desc, amount in _line_rows(doc, ln):
            if y < bottom:
                _draw_footer(c, doc, page_no)
                c.showPage()
                page_no += 1
                y = PAGE_H - MARGIN - 6 * mm
                y = _draw_table_header(c, y)
            c.setFillColor(INK)
            c.setFont("Helvetica", 9)
            c.drawString(x1, y, label)
            c.drawString(x2, y, desc)
            if amount:
                c.drawRightString(x_end, y, amount)
            y -= 5 * mm

    # notes + totals need to stay together
    note_lines = simpleSplit(_s(doc.notes, ""), "Helvetica", 9,
                             PAGE_W - 2 * MARGIN) if doc.notes else []
    needed = (14 + 4.4 * len(note_lines) + 6 + 4 * 6) * mm
    if y - needed < bottom:
        _draw_footer(c, doc, page_no)
        c.showPage()
        page_no += 1
        y = PAGE_H - MARGIN - 6 * mm

    y -= 8 * mm
    c.setFillColor(MUTED)
    c.setFont("Helvetica-Bold", 9.5)
    c.drawString(MARGIN, y, "NOTES")
    y -= 5 * mm
    c.setFillColor(INK)
    c.setFont("Helvetica", 9)
    for nl in note_lines:
        c.drawString(MARGIN, y, nl)
        y -= 4.4 * mm
    y -= 6 * mm

    totals_x = x_end - 70 * mm
    rows = [
        ("SUBTOTAL", doc.money(doc.subtotal), "Helvetica"),
        ("TAX RATE", doc.tax_rate_label, "Helvetica"),
        ("TAX", doc.money(doc.tax), "Helvetica"),
        ("TOTAL", doc.money(doc.total), "Helvetica-Bold"),
    ]
    for k, v, font in rows:
        c.setFont(font, 10)
        c.drawString(totals_x, y, k)
        c.drawRightString(x_end, y, v)
        y -= 6 * mm

    _draw_footer(c, doc, page_no)
    c.showPage()
    c.save()
    return buf.getvalue()
