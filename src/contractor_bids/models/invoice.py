from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field


class InvoiceStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    paid = "paid"
    overdue = "overdue"


class InvoiceLineItem(BaseModel):
    description: str = ""
    amount: Union[float, str, None] = 0.0


class Invoice(BaseModel):
    id: str | None = None
    created_by: str | None = None
    created_date: datetime | None = None
    updated_date: datetime | None = None

    invoice_number: str
    status: InvoiceStatus = InvoiceStatus.draft
    issue_date: datetime
    due_date: datetime
    client_name: str = ""
    client_email: str = ""
    project_title: str = ""
    line_items: list[InvoiceLineItem] = Field(default_factory=list)
    subtotal: float = 0.0
    tax_rate: Union[float, str, None] = 0.0
    tax_amount: float = 0.0
    total_amount: float = 0.0
    notes: str = ""
    related_bid_id: str | None = None

    company_name: str = ""
    company_address: str = ""
    company_phone: str = ""
    company_email: str = ""
    company_website: str = ""
    company_logo_url: str = ""


__all__ = ["Invoice", "InvoiceLineItem", "InvoiceStatus"]
