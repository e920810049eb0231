from __future__ import annotations

from typing import Iterator

from pydantic import EmailStr, TypeAdapter, ValidationError

from .coercion import coerce_number, is_numeric_input
from .errors import BidValidationError
from .models.bid import Bid
from .models.line_items import CostItem

_EMAIL = TypeAdapter(EmailStr)

REQUIRED_FIELDS = {
    "client_name": "Client name is required",
    "client_email": "Client email is required",
    "project_title": "Project title is required",
    "project_description": "Project description is required",
}


def is_valid_email(value: str | None) -> bool:
    try:
        _EMAIL.validate_python((value or "").strip())
    except ValidationError:
        return False
    return True


def required_field_problems(bid: Bid) -> list[str]:
    problems = [
        message
        for field, message in REQUIRED_FIELDS.items()
        if not str(getattr(bid, field) or "").strip()
    ]
    if bid.client_email.strip() and not is_valid_email(bid.client_email):
        problems.append("Client email must be a valid email address")
    return problems


def validate_for_submission(bid: Bid) -> None:
    """Raise ``BidValidationError`` when a required field is missing."""
    problems = required_field_problems(bid)
    if problems:
        raise BidValidationError(problems)


def _labelled_items(bid: Bid) -> Iterator[tuple[str, CostItem]]:
    for collection in ("materials", "labor_items", "equipment_items", "overhead_items"):
        for index, item in enumerate(getattr(bid, collection)):
            yield f"{collection}[{index}]", item
    for category_index, category in enumerate(bid.custom_expenses):
        for index, item in enumerate(category.items):
            yield f"custom_expenses[{category_index}].items[{index}]", item


def strict_problems(bid: Bid) -> list[str]:
    """Numeric problems that data entry tolerates but a strict submit does not."""
    problems: list[str] = []
    for label, item in _labelled_items(bid):
        for field in item.numeric_fields:
            value = getattr(item, field)
            if not is_numeric_input(value):
                problems.append(f"{label}.{field} is not a number")
            elif coerce_number(value) < 0:
                problems.append(f"{label}.{field} is negative")
    if not is_numeric_input(bid.markup_percentage):
        problems.append("markup_percentage is not a number")
    elif coerce_number(bid.markup_percentage) < 0:
        problems.append("markup_percentage is negative")
    return problems


def validate_strict(bid: Bid) -> None:
    problems = required_field_problems(bid) + strict_problems(bid)
    if problems:
        raise BidValidationError(problems)


__all__ = [
    "REQUIRED_FIELDS",
    "is_valid_email",
    "required_field_problems",
    "validate_for_submission",
    "strict_problems",
    "validate_strict",
]
