from __future__ import annotations

import logging
import re

from .models.profile import UserProfile
from .models.proposal import CompanyInfo
from .repositories import ProfileRepository

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"[^\d]")


def digits_only(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def format_phone_number(value: str | None) -> str:
    """Format up to ten digits as ``(555) 123-4567``, partially while typing."""
    digits = digits_only(value)[:10]
    if len(digits) < 4:
        return digits
    if len(digits) < 7:
        return f"({digits[:3]}) {digits[3:]}"
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def company_info_from_profile(profile: UserProfile) -> CompanyInfo:
    return CompanyInfo(
        company_name=profile.business_name,
        address=profile.business_address,
        phone=format_phone_number(profile.business_phone) if profile.business_phone else "",
        email=profile.business_email,
        website=profile.business_website,
        logo_url=profile.business_logo_url,
    )


class ProfileService:
    def __init__(self, profiles: ProfileRepository) -> None:
        self._profiles = profiles

    def get(self, email: str) -> UserProfile:
        found = self._profiles.find(email)
        if found is None:
            return UserProfile(email=email)
        return found[1]

    def update(self, email: str, **fields: object) -> UserProfile:
        if "business_phone" in fields:
            fields["business_phone"] = digits_only(str(fields["business_phone"] or ""))
        found = self._profiles.find(email)
        if found is None:
            profile = UserProfile.model_validate({"email": email, **fields})
            return self._profiles.create(None, profile)
        profile_id, current = found
        updated = UserProfile.model_validate({**current.model_dump(), **fields, "email": email})
        logger.info("Updated profile", extra={"email": email, "fields": sorted(fields)})
        return self._profiles.update(profile_id, updated)

    def company_info(self, email: str) -> CompanyInfo:
        return company_info_from_profile(self.get(email))


__all__ = [
    "ProfileService",
    "company_info_from_profile",
    "digits_only",
    "format_phone_number",
]
