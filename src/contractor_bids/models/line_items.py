from __future__ import annotations

from decimal import Decimal
from typing import ClassVar, Union

from pydantic import BaseModel, Field

from ..coercion import coerce_number
from ..errors import UnknownFieldError

# Form input is kept as typed so that half-entered numbers never block editing.
NumericInput = Union[float, str, None]


def _numeric_input(value: object) -> NumericInput:
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        return float(value)
    return str(value)


class CostItem(BaseModel):
    """A priced line whose ``actual_cost`` is the product of two factors."""

    cost_factors: ClassVar[tuple[str, str]]
    numeric_fields: ClassVar[tuple[str, ...]]

    actual_cost: float = 0.0

    @classmethod
    def kind_name(cls) -> str:
        return cls.__name__

    @classmethod
    def editable_fields(cls) -> frozenset[str]:
        return frozenset(name for name in cls.model_fields if name != "actual_cost")

    def computed_cost(self) -> float:
        first, second = self.cost_factors
        return coerce_number(getattr(self, first)) * coerce_number(getattr(self, second))

    def with_field(self, field: str, value: object) -> "CostItem":
        if field not in self.editable_fields():
            raise UnknownFieldError(self.kind_name(), field)
        if field in self.numeric_fields:
            value = _numeric_input(value)
        else:
            value = "" if value is None else str(value)
        updated = self.model_copy(update={field: value})
        if field in self.cost_factors:
            updated.actual_cost = updated.computed_cost()
        return updated

    def normalized(self) -> "CostItem":
        update = {name: coerce_number(getattr(self, name)) for name in self.numeric_fields}
        first, second = self.cost_factors
        update["actual_cost"] = update[first] * update[second]
        return self.model_copy(update=update)


class MaterialItem(CostItem):
    cost_factors = ("quantity", "cost_per_unit")
    numeric_fields = ("quantity", "cost_per_unit")

    name: str = ""
    quantity: NumericInput = ""
    unit: str = "sq ft"
    cost_per_unit: NumericInput = ""


class LaborItem(CostItem):
    cost_factors = ("hours", "cost_per_hour")
    numeric_fields = ("hours", "cost_per_hour")

    description: str = ""
    hours: NumericInput = ""
    cost_per_hour: NumericInput = ""


class EquipmentItem(CostItem):
    cost_factors = ("rental_duration", "cost_per_unit")
    numeric_fields = ("rental_duration", "cost_per_unit")

    name: str = ""
    rental_duration: NumericInput = ""
    rental_unit: str = "day"
    cost_per_unit: NumericInput = ""


class OverheadItem(CostItem):
    cost_factors = ("quantity", "cost_per_unit")
    numeric_fields = ("quantity", "cost_per_unit")

    description: str = ""
    quantity: NumericInput = ""
    unit: str = "each"
    cost_per_unit: NumericInput = ""


class CustomExpenseItem(CostItem):
    cost_factors = ("quantity", "cost_per_unit")
    numeric_fields = ("quantity", "cost_per_unit")

    description: str = ""
    quantity: NumericInput = ""
    unit: str = "each"
    cost_per_unit: NumericInput = ""


class CustomExpenseCategory(BaseModel):
    category_name: str
    items: list[CustomExpenseItem] = Field(default_factory=list)

    @property
    def total(self) -> float:
        return sum(coerce_number(item.actual_cost) for item in self.items)


__all__ = [
    "NumericInput",
    "CostItem",
    "MaterialItem",
    "LaborItem",
    "EquipmentItem",
    "OverheadItem",
    "CustomExpenseItem",
    "CustomExpenseCategory",
]
