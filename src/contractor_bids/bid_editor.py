from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Iterable

from .models.bid import Bid
from .models.line_items import (
    CostItem,
    CustomExpenseCategory,
    CustomExpenseItem,
    EquipmentItem,
    LaborItem,
    MaterialItem,
    OverheadItem,
)
from .models.rate import RateEntry
from .errors import UnknownFieldError
from .pricing import apply_totals

logger = logging.getLogger(__name__)


class LineItemKind(str, Enum):
    materials = "materials"
    labor = "labor"
    equipment = "equipment"
    overhead = "overhead"


_COLLECTIONS: dict[LineItemKind, tuple[str, type[CostItem]]] = {
    LineItemKind.materials: ("materials", MaterialItem),
    LineItemKind.labor: ("labor_items", LaborItem),
    LineItemKind.equipment: ("equipment_items", EquipmentItem),
    LineItemKind.overhead: ("overhead_items", OverheadItem),
}

HEADER_FIELDS = frozenset(
    {
        "client_name",
        "client_email",
        "project_title",
        "project_description",
        "markup_percentage",
        "status",
        "notes",
        "valid_until",
    }
)

ChangeListener = Callable[[Bid], None]


def item_from_rate(rate: RateEntry, kind: LineItemKind) -> CostItem:
    """Seed a line item of ``kind`` from a catalog rate (values are copied)."""
    quantity = rate.quantity or 1
    if kind is LineItemKind.materials:
        item: CostItem = MaterialItem(
            name=rate.name, quantity=quantity, unit=rate.unit, cost_per_unit=rate.cost_per_unit
        )
    elif kind is LineItemKind.labor:
        item = LaborItem(description=rate.name, hours=rate.hours or 1, cost_per_hour=rate.cost_per_unit)
    elif kind is LineItemKind.equipment:
        item = EquipmentItem(
            name=rate.name,
            rental_duration=quantity,
            rental_unit=rate.unit or "day",
            cost_per_unit=rate.cost_per_unit,
        )
    else:
        item = OverheadItem(
            description=rate.name, quantity=quantity, unit=rate.unit, cost_per_unit=rate.cost_per_unit
        )
    item.actual_cost = item.computed_cost()
    return item


class BidEditor:
    """In-memory editing of a bid's header fields and line-item collections.

    Every mutation recomputes the bid totals before listeners are told about
    the change, so nothing downstream ever observes stale totals.
    """

    def __init__(self, bid: Bid | None = None, *, rates: Iterable[RateEntry] = ()) -> None:
        self._bid = apply_totals(bid if bid is not None else Bid())
        self._rates: dict[str, RateEntry] = {}
        self._listeners: list[ChangeListener] = []
        self.set_rates(rates)

    @property
    def bid(self) -> Bid:
        return self._bid

    def set_rates(self, rates: Iterable[RateEntry]) -> None:
        self._rates = {rate.id: rate for rate in rates if rate.id}

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def prefill(self, *, client_email: str | None = None) -> None:
        """Fill a blank client email without counting as an edit."""
        if client_email and not self._bid.client_email:
            self._bid = self._bid.model_copy(update={"client_email": client_email})

    def _commit(self, bid: Bid) -> None:
        self._bid = apply_totals(bid)
        for listener in self._listeners:
            listener(self._bid)

    # Header fields

    def set_field(self, field: str, value: object) -> None:
        if field not in HEADER_FIELDS:
            raise UnknownFieldError("Bid", field)
        data = self._bid.model_dump()
        data[field] = value
        self._commit(Bid.model_validate(data))

    # Typed line-item collections

    def items(self, kind: LineItemKind) -> list[CostItem]:
        attr, _ = _COLLECTIONS[LineItemKind(kind)]
        return list(getattr(self._bid, attr))

    def _replace_items(self, kind: LineItemKind, items: list[CostItem]) -> None:
        attr, _ = _COLLECTIONS[LineItemKind(kind)]
        self._commit(self._bid.model_copy(update={attr: items}))

    def add_item(self, kind: LineItemKind) -> int:
        _, item_type = _COLLECTIONS[LineItemKind(kind)]
        items = self.items(kind)
        items.append(item_type())
        self._replace_items(kind, items)
        return len(items) - 1

    def update_item(self, kind: LineItemKind, index: int, field: str, value: object) -> None:
        items = self.items(kind)
        items[index] = items[index].with_field(field, value)
        self._replace_items(kind, items)

    def remove_item(self, kind: LineItemKind, index: int) -> None:
        items = self.items(kind)
        del items[index]
        self._replace_items(kind, items)

    def duplicate_item(self, kind: LineItemKind, index: int) -> int:
        items = self.items(kind)
        items.insert(index + 1, items[index].model_copy())
        self._replace_items(kind, items)
        return index + 1

    def add_from_rate(self, rate_id: str, kind: LineItemKind) -> bool:
        rate = self._rates.get(rate_id)
        if rate is None:
            logger.debug("Rate not in catalog, nothing added", extra={"rate_id": rate_id})
            return False
        items = self.items(kind)
        items.append(item_from_rate(rate, LineItemKind(kind)))
        self._replace_items(kind, items)
        return True

    # Custom expense categories

    def _replace_categories(self, categories: list[CustomExpenseCategory]) -> None:
        self._commit(self._bid.model_copy(update={"custom_expenses": categories}))

    def _replace_category_items(self, category_index: int, items: list[CustomExpenseItem]) -> None:
        categories = list(self._bid.custom_expenses)
        categories[category_index] = categories[category_index].model_copy(update={"items": items})
        self._replace_categories(categories)

    def add_category(self, name: str | None) -> bool:
        """Append a category; blank or cancelled (``None``) names add nothing."""
        if not name or not name.strip():
            return False
        categories = list(self._bid.custom_expenses)
        categories.append(CustomExpenseCategory(category_name=name.strip()))
        self._replace_categories(categories)
        return True

    def remove_category(self, category_index: int) -> None:
        categories = list(self._bid.custom_expenses)
        del categories[category_index]
        self._replace_categories(categories)

    def add_category_item(self, category_index: int) -> int:
        items = list(self._bid.custom_expenses[category_index].items)
        items.append(CustomExpenseItem())
        self._replace_category_items(category_index, items)
        return len(items) - 1

    def update_category_item(self, category_index: int, item_index: int, field: str, value: object) -> None:
        items = list(self._bid.custom_expenses[category_index].items)
        items[item_index] = items[item_index].with_field(field, value)
        self._replace_category_items(category_index, items)

    def remove_category_item(self, category_index: int, item_index: int) -> None:
        items = list(self._bid.custom_expenses[category_index].items)
        del items[item_index]
        self._replace_category_items(category_index, items)


__all__ = ["BidEditor", "LineItemKind", "HEADER_FIELDS", "item_from_rate"]
