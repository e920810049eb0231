import pytest

from contractor_bids.models.rate import RateCategory, RateEntry
from contractor_bids.profiles import ProfileService, company_info_from_profile, format_phone_number
from contractor_bids.models.profile import UserProfile
from contractor_bids.rates import RateCatalog, average_margin, calculate_margin
from contractor_bids.repositories import ProfileRepository, RateRepository

OWNER = "owner@example.com"


@pytest.mark.parametrize(
    "cost, charge, expected",
    [(60, 100, 40.0), (0, 100, 0.0), (60, 0, 0.0), ("", "100", 0.0), (80, 100, 20.0)],
)
def test_margin_is_taken_on_charge(cost, charge, expected):
    assert calculate_margin(cost, charge) == pytest.approx(expected)


def test_catalog_stores_derived_margin(store):
    catalog = RateCatalog(RateRepository(store))

    created = catalog.create(OWNER, RateEntry(name="Tile", cost_per_unit=6, charge_per_unit=10, profit_margin=99))
    assert created.profit_margin == pytest.approx(40.0)
    assert created.created_by == OWNER

    updated = catalog.update(created.id, created.model_copy(update={"charge_per_unit": 12}))
    assert updated.profit_margin == pytest.approx(50.0)
    assert updated.created_by == OWNER

    catalog.delete(created.id)
    assert catalog.list(OWNER) == []


def test_bulk_create_and_average(store):
    catalog = RateCatalog(RateRepository(store))
    catalog.bulk_create(
        OWNER,
        [
            RateEntry(name="Tile", category=RateCategory.materials, cost_per_unit=6, charge_per_unit=10),
            RateEntry(name="Install", category=RateCategory.labor, unit="hour", cost_per_unit=30, charge_per_unit=60),
        ],
    )
    rates = catalog.list(OWNER)
    assert len(rates) == 2
    assert average_margin(rates) == pytest.approx(45.0)
    assert average_margin([]) == 0.0


@pytest.mark.parametrize(
    "raw, formatted",
    [("5551234567", "(555) 123-4567"), ("555-12", "(555) 12"), ("55", "55"), ("+1 555 123 45678", "(155) 512-3456")],
)
def test_phone_formatting(raw, formatted):
    assert format_phone_number(raw) == formatted


def test_profile_service_stores_digits(store):
    service = ProfileService(ProfileRepository(store))
    assert service.get(OWNER).business_name == ""

    service.update(OWNER, business_name="Acme", business_phone="(555) 123-4567")
    service.update(OWNER, business_email="hello@acme.test")

    profile = service.get(OWNER)
    assert profile.business_phone == "5551234567"
    assert profile.business_name == "Acme"
    company = service.company_info(OWNER)
    assert company.phone == "(555) 123-4567"
    assert company.email == "hello@acme.test"


def test_company_info_without_phone():
    company = company_info_from_profile(UserProfile(email=OWNER, business_name="Acme"))
    assert company.phone == ""
    assert company.company_name == "Acme"
