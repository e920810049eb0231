from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, Field, field_validator

from .line_items import (
    CustomExpenseCategory,
    EquipmentItem,
    LaborItem,
    MaterialItem,
    OverheadItem,
)


class BidStatus(str, Enum):
    draft = "draft"
    sent = "sent"
    accepted = "accepted"
    rejected = "rejected"
    changes_requested = "changes_requested"


class BidTotals(BaseModel):
    materials_total: float = 0.0
    labor_total: float = 0.0
    equipment_total: float = 0.0
    overhead_total: float = 0.0
    custom_expenses_total: float = 0.0
    subtotal: float = 0.0
    markup_amount: float = 0.0
    total_bid_amount: float = 0.0
    total_actual_cost: float = 0.0
    total_profit: float = 0.0
    profit_margin_percentage: float = 0.0


class Bid(BaseModel):
    id: str | None = None
    created_by: str | None = None
    created_date: datetime | None = None
    updated_date: datetime | None = None

    client_name: str = ""
    client_email: str = ""
    project_title: str = ""
    project_description: str = ""

    materials: list[MaterialItem] = Field(default_factory=list)
    labor_items: list[LaborItem] = Field(default_factory=list)
    equipment_items: list[EquipmentItem] = Field(default_factory=list)
    overhead_items: list[OverheadItem] = Field(default_factory=list)
    custom_expenses: list[CustomExpenseCategory] = Field(default_factory=list)

    markup_percentage: Union[float, str, None] = 20.0
    status: BidStatus = BidStatus.draft
    notes: str = ""
    valid_until: date | None = None

    materials_total: float = 0.0
    labor_total: float = 0.0
    equipment_total: float = 0.0
    overhead_total: float = 0.0
    custom_expenses_total: float = 0.0
    subtotal: float = 0.0
    markup_amount: float = 0.0
    total_bid_amount: float = 0.0
    total_actual_cost: float = 0.0
    total_profit: float = 0.0
    profit_margin_percentage: float = 0.0

    proposal_html: str | None = None
    change_request_notes: str | None = None
    is_example: bool = False

    @field_validator("valid_until", mode="before")
    @classmethod
    def _blank_date(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    @field_validator("notes", "client_name", "client_email", "project_title", "project_description", mode="before")
    @classmethod
    def _none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    def with_totals(self, totals: BidTotals) -> "Bid":
        return self.model_copy(update=totals.model_dump())


# Shown in the bid list until the owner saves a real bid.
EXAMPLE_BID = Bid(
    id="example-bid-001",
    client_name="Demo Client",
    project_title="Sample Kitchen Renovation",
    project_description=(
        "This is an example bid to show you how the system works. "
        "Create your first real bid to get started!"
    ),
    materials_total=2500,
    labor_total=1800,
    equipment_total=400,
    overhead_total=200,
    custom_expenses_total=300,
    subtotal=5200,
    total_actual_cost=5200,
    markup_amount=1040,
    total_profit=1040,
    total_bid_amount=6240,
    profit_margin_percentage=1040 / 6240 * 100,
    markup_percentage=20,
    status=BidStatus.draft,
    is_example=True,
)


__all__ = ["Bid", "BidStatus", "BidTotals", "EXAMPLE_BID"]
