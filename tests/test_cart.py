from decimal import Decimal

import pytest
from rest_framework.exceptions import ValidationError

from inventory.models import BusinessUnit
from orders.cart import Cart, CartStore, RemovalPolicy
from orders.pricing import apply_tax, deduction_for_variant, default_voice_variant, price_for_variant


@pytest.mark.django_db
def test_same_item_and_variant_merge_into_one_line(rum):
    cart = Cart(BusinessUnit.BAR, "counter")
    cart.add_line(rum, "60ml")
    cart.add_line(rum, "60ml", quantity=2)
    cart.add_line(rum, "30ml")

    assert len(cart.lines) == 2
    assert cart.get_line(f"{rum.pk}-60ml").quantity == 3
    assert cart.get_line(f"{rum.pk}-30ml").quantity == 1
    assert cart.item_count() == 4
    assert cart.total() == Decimal("700.00")


@pytest.mark.django_db
def test_pour_prices_scale_from_base(rum):
    assert price_for_variant(rum, "30ml") == Decimal("100")
    assert price_for_variant(rum, "60ml") == Decimal("200")
    assert price_for_variant(rum, "90ml") == Decimal("300")
    assert price_for_variant(rum, "Btl") == Decimal("1200")
    assert price_for_variant(rum) == Decimal("100")


@pytest.mark.django_db
def test_variant_price_override_wins(beer):
    assert price_for_variant(beer, "Btl") == Decimal("180.00")
    assert price_for_variant(beer, "60ml") == Decimal("300.00")


def test_unknown_variant_is_rejected():
    with pytest.raises(ValidationError):
        deduction_for_variant("45ml")


def test_deduction_ratios():
    assert deduction_for_variant("30ml") == Decimal("0.04")
    assert deduction_for_variant("90ml") == Decimal("0.12")
    assert deduction_for_variant("Btl") == Decimal("1.00")
    assert deduction_for_variant() == Decimal("1")


@pytest.mark.django_db
def test_voice_defaults_beer_to_bottle_and_spirits_to_smallest_pour(rum, beer, dal):
    assert default_voice_variant(beer) == "Btl"
    assert default_voice_variant(rum) == "30ml"
    assert default_voice_variant(dal) is None


@pytest.mark.django_db
def test_decrement_policy_drops_line_at_zero(dal):
    cart = Cart(BusinessUnit.RESTAURANT, "T1")
    cart.add_line(dal, quantity=2)
    key = str(dal.pk)

    cart.remove_line(key, RemovalPolicy.DECREMENT)
    assert cart.get_line(key).quantity == 1
    cart.remove_line(key, RemovalPolicy.DECREMENT)
    assert cart.get_line(key) is None


@pytest.mark.django_db
def test_delete_line_policy_removes_whole_line(rum):
    cart = Cart(BusinessUnit.BAR, "counter")
    cart.add_line(rum, "30ml", quantity=5)
    cart.remove_line(f"{rum.pk}-30ml", RemovalPolicy.DELETE_LINE)
    assert cart.lines == []


@pytest.mark.django_db
def test_removal_policy_must_be_explicit(dal):
    cart = Cart(BusinessUnit.RESTAURANT, "T1")
    cart.add_line(dal)
    with pytest.raises(ValidationError):
        cart.remove_line(str(dal.pk), "decrement")


@pytest.mark.django_db
def test_cannot_add_unavailable_or_foreign_items(dal, rum):
    cart = Cart(BusinessUnit.RESTAURANT, "T1")
    with pytest.raises(ValidationError):
        cart.add_line(rum, "30ml")

    dal.is_available = False
    with pytest.raises(ValidationError):
        cart.add_line(dal)

    with pytest.raises(ValidationError):
        Cart(BusinessUnit.RESTAURANT, "T1").add_line(rum, quantity=0)
    assert cart.lines == []


@pytest.mark.django_db
def test_cart_line_keeps_price_after_catalog_change(dal):
    cart = Cart(BusinessUnit.RESTAURANT, "T1")
    cart.add_line(dal)
    dal.price = Decimal("999.00")
    dal.save()
    cart.add_line(dal)

    assert cart.get_line(str(dal.pk)).unit_price == Decimal("220.00")
    assert cart.total() == Decimal("440.00")


@pytest.mark.django_db
def test_store_keeps_one_cart_per_source(session, dal, naan):
    store = CartStore(session)
    first = store.load(BusinessUnit.RESTAURANT, "T1")
    first.add_line(dal)
    store.save(first)
    second = store.load(BusinessUnit.RESTAURANT, "T2")
    second.add_line(naan, quantity=3)
    store.save(second)

    reloaded = store.load(BusinessUnit.RESTAURANT, "T1")
    assert [line.name for line in reloaded.lines] == ["Dal Makhani"]
    assert reloaded.total() == Decimal("220.00")
    assert store.load(BusinessUnit.RESTAURANT, "T2").item_count() == 3
    assert session.modified is True

    reloaded.clear()
    store.save(reloaded)
    assert "RESTAURANT:T1" not in session[CartStore.SESSION_KEY]


def test_tax_rounds_half_up_to_whole_units():
    assert apply_tax(Decimal("1000")) == (Decimal("50"), Decimal("1050"))
    assert apply_tax(Decimal("210")) == (Decimal("11"), Decimal("221"))
    assert apply_tax(Decimal("100"), rate=Decimal("0.18")) == (Decimal("18"), Decimal("118"))
