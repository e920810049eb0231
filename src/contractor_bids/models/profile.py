from __future__ import annotations

from pydantic import BaseModel


class UserProfile(BaseModel):
    email: str
    full_name: str | None = None
    business_name: str = ""
    business_address: str = ""
    business_phone: str = ""
    business_email: str = ""
    business_website: str = ""
    business_logo_url: str = ""
    has_completed_onboarding: bool = False


__all__ = ["UserProfile"]
