from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from .coercion import coerce_number
from .models.bid import Bid
from .models.invoice import Invoice, InvoiceLineItem, InvoiceStatus
from .models.proposal import CompanyInfo
from .pricing import billable_amounts
from .profiles import digits_only
from .repositories import InvoiceRepository

logger = logging.getLogger(__name__)

PAYMENT_TERMS = timedelta(days=30)
DEFAULT_NOTES = "Thank you for your business!"

INVOICE_LABELS = {
    "materials_total": "Materials & Supplies",
    "labor_total": "Labor & Services",
    "equipment_total": "Equipment Rental",
    "overhead_total": "Overhead & Admin",
    "custom_expenses_total": "Other Direct Costs",
    "markup_amount": "Project Management & Overhead",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_invoice_number(issued_at: datetime) -> str:
    suffix = uuid.uuid4().hex[:6].upper()
    return f"INV-{issued_at.strftime('%Y%m%d')}-{suffix}"


def derive_invoice(bid: Bid, company: CompanyInfo, *, issued_at: datetime) -> Invoice:
    """Build a draft invoice from a bid's persisted totals.

    The subtotal is the bid's total amount as stored, so it may differ from
    the sum of the category lines if the bid totals are stale.
    """
    line_items = [
        InvoiceLineItem(description=INVOICE_LABELS[name], amount=amount)
        for name, amount in billable_amounts(bid)
    ]
    subtotal = float(bid.total_bid_amount or 0.0)
    return Invoice(
        invoice_number=generate_invoice_number(issued_at),
        status=InvoiceStatus.draft,
        issue_date=issued_at,
        due_date=issued_at + PAYMENT_TERMS,
        client_name=bid.client_name,
        client_email=bid.client_email,
        project_title=bid.project_title,
        line_items=line_items,
        subtotal=subtotal,
        tax_rate=0.0,
        tax_amount=0.0,
        total_amount=subtotal,
        notes=DEFAULT_NOTES,
        related_bid_id=bid.id,
        company_name=company.company_name,
        company_address=company.address,
        company_phone=digits_only(company.phone),
        company_email=company.email,
        company_website=company.website,
        company_logo_url=company.logo_url,
    )


def recalculate_invoice(invoice: Invoice) -> Invoice:
    """Recompute subtotal, tax and total after line items or the tax rate changed."""
    line_items = [
        item.model_copy(update={"amount": coerce_number(item.amount)}) for item in invoice.line_items
    ]
    subtotal = sum((item.amount for item in line_items), 0.0)
    tax_rate = coerce_number(invoice.tax_rate)
    tax_amount = subtotal * (tax_rate / 100)
    return invoice.model_copy(
        update={
            "line_items": line_items,
            "subtotal": subtotal,
            "tax_rate": tax_rate,
            "tax_amount": tax_amount,
            "total_amount": subtotal + tax_amount,
        }
    )


class InvoiceService:
    def __init__(self, invoices: InvoiceRepository, *, now: Callable[[], datetime] = _utcnow) -> None:
        self._invoices = invoices
        self._now = now

    def list(self, owner: str) -> list[Invoice]:
        return self._invoices.list_for_owner(owner, order_by="created_date")

    def create_from_bid(self, owner: str, bid: Bid, company: CompanyInfo) -> Invoice:
        invoice = self._invoices.create(owner, derive_invoice(bid, company, issued_at=self._now()))
        logger.info(
            "Created invoice from bid",
            extra={"owner": owner, "bid_id": bid.id, "invoice_id": invoice.id, "invoice_number": invoice.invoice_number},
        )
        return invoice

    def save(self, owner: str, invoice: Invoice) -> Invoice:
        recalculated = recalculate_invoice(invoice)
        if invoice.id:
            return self._invoices.update(invoice.id, recalculated)
        return self._invoices.create(owner, recalculated)

    def mark_paid(self, invoice_id: str) -> Invoice:
        return self._set_status(invoice_id, InvoiceStatus.paid)

    def unmark_paid(self, invoice_id: str) -> Invoice:
        return self._set_status(invoice_id, InvoiceStatus.draft)

    def delete(self, invoice_id: str) -> None:
        self._invoices.delete(invoice_id)
        logger.info("Deleted invoice", extra={"invoice_id": invoice_id})

    def _set_status(self, invoice_id: str, status: InvoiceStatus) -> Invoice:
        invoice = self._invoices.update(invoice_id, {"status": status})
        logger.info("Updated invoice status", extra={"invoice_id": invoice_id, "status": status.value})
        return invoice


__all__ = [
    "DEFAULT_NOTES",
    "INVOICE_LABELS",
    "InvoiceService",
    "PAYMENT_TERMS",
    "derive_invoice",
    "generate_invoice_number",
    "recalculate_invoice",
]
