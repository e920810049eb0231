from __future__ import annotations

import logging
from typing import Iterable, Sequence

from .coercion import coerce_number
from .models.rate import RateEntry
from .repositories import RateRepository

logger = logging.getLogger(__name__)


def calculate_margin(cost: object, charge: object) -> float:
    """Profit margin on the charged price; 0 when cost or charge is blank or zero."""
    cost_value = coerce_number(cost)
    charge_value = coerce_number(charge)
    if not cost_value or not charge_value:
        return 0.0
    return (charge_value - cost_value) / charge_value * 100


def with_margin(rate: RateEntry) -> RateEntry:
    return rate.model_copy(update={"profit_margin": calculate_margin(rate.cost_per_unit, rate.charge_per_unit)})


def average_margin(rates: Sequence[RateEntry]) -> float:
    if not rates:
        return 0.0
    return sum(rate.profit_margin or 0.0 for rate in rates) / len(rates)


class RateCatalog:
    def __init__(self, rates: RateRepository) -> None:
        self._rates = rates

    def list(self, owner: str) -> list[RateEntry]:
        return self._rates.list_for_owner(owner)

    def create(self, owner: str, rate: RateEntry) -> RateEntry:
        return self._rates.create(owner, with_margin(rate))

    def update(self, rate_id: str, rate: RateEntry) -> RateEntry:
        return self._rates.update(rate_id, with_margin(rate))

    def delete(self, rate_id: str) -> None:
        self._rates.delete(rate_id)

    def bulk_create(self, owner: str, rates: Iterable[RateEntry]) -> list[RateEntry]:
        """Insert rates produced by the business-setup flow."""
        created = [self.create(owner, rate) for rate in rates]
        logger.info("Imported service rates", extra={"owner": owner, "count": len(created)})
        return created


__all__ = ["RateCatalog", "average_margin", "calculate_margin", "with_margin"]
