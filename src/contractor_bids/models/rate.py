from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class RateCategory(str, Enum):
    materials = "materials"
    labor = "labor"
    equipment = "equipment"
    overhead = "overhead"


class RateEntry(BaseModel):
    id: str | None = None
    name: str
    category: RateCategory = RateCategory.materials
    unit: str = "sq ft"
    cost_per_unit: float = 0.0
    charge_per_unit: float = 0.0
    profit_margin: float = 0.0
    description: str | None = None
    quantity: float | None = Field(default=None, description="Default quantity when seeding a line item")
    hours: float | None = Field(default=None, description="Default hours when seeding a labor item")
    created_by: str | None = None
    created_date: datetime | None = None
    updated_date: datetime | None = None


__all__ = ["RateCategory", "RateEntry"]
