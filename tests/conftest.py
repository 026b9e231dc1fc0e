from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from inventory.models import BusinessUnit, MenuItem


class FakeSession(dict):
    """Just enough of a Django session for CartStore"""
    modified = False


@pytest.fixture
def session():
    return FakeSession()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def rum(db):
    return MenuItem.objects.create(
        name="Old Monk",
        local_name="ओल्ड मंक",
        price=Decimal("100.00"),
        business_unit=BusinessUnit.BAR,
        category="drink",
        sub_category="Rum",
        stock=Decimal("2.00"),
    )


@pytest.fixture
def beer(db):
    return MenuItem.objects.create(
        name="Kingfisher",
        price=Decimal("150.00"),
        business_unit=BusinessUnit.BAR,
        category="drink",
        sub_category="Beer",
        variant_prices={"Btl": "180.00"},
        stock=Decimal("24.00"),
    )


@pytest.fixture
def dal(db):
    return MenuItem.objects.create(
        name="Dal Makhani",
        local_name="दाल मखनी",
        price=Decimal("220.00"),
        business_unit=BusinessUnit.RESTAURANT,
        category="food",
        sub_category="Main Course",
        is_veg=True,
    )


@pytest.fixture
def naan(db):
    return MenuItem.objects.create(
        name="Butter Naan",
        price=Decimal("45.00"),
        business_unit=BusinessUnit.RESTAURANT,
        category="food",
        sub_category="Breads",
        is_veg=True,
    )


@pytest.fixture
def snooker_hour(db):
    return MenuItem.objects.create(
        name="Snooker Table (1 hr)",
        price=Decimal("300.00"),
        business_unit=BusinessUnit.BILLIARDS,
        category="billiards",
    )
