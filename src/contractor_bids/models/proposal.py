from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, EmailStr, field_validator


class ResponseType(str, Enum):
    accepted = "accepted"
    rejected = "rejected"
    changes_requested = "changes_requested"


class ProposalResponse(BaseModel):
    id: str | None = None
    created_date: datetime | None = None
    bid_id: str
    response_type: ResponseType
    notes: str | None = None
    client_email: EmailStr | None = None


class ProposalSections(BaseModel):
    executive_summary: str = ""
    scope_of_work: str = ""
    timeline: str = ""
    terms_and_conditions: str = ""
    payment_schedule: str = ""
    closing_statement: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_blank(cls, value: object) -> object:
        return "" if value is None else value

    @classmethod
    def json_schema_for_generation(cls) -> dict[str, object]:
        return {
            "type": "object",
            "properties": {name: {"type": "string"} for name in cls.model_fields},
        }


class CompanyInfo(BaseModel):
    company_name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    website: str = ""
    logo_url: str = ""


__all__ = ["CompanyInfo", "ProposalResponse", "ProposalSections", "ResponseType"]
