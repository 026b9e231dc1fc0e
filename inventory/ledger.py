"""Stock counters for the restaurant tiers and bar bottles, with an audit log.

Every function that changes a quantity writes exactly one ``InventoryLog``
row per item touched, inside the same transaction as the change.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import F
from rest_framework.exceptions import ValidationError

from venuepos.exceptions import InsufficientStock
from .models import BusinessUnit, InventoryItem, InventoryLog, MenuItem

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def _quantize(value):
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _positive(amount, field='amount'):
    try:
        amount = _quantize(amount)
    except (ArithmeticError, ValueError, TypeError):
        raise ValidationError({field: 'Enter a valid number.'})
    if amount <= 0:
        raise ValidationError({field: 'Amount must be greater than zero.'})
    return amount


@transaction.atomic
def create_item(tier, name, quantity, unit, min_threshold=0):
    name = (name or '').strip()
    if not name:
        raise ValidationError({'name': 'Name is required.'})
    if tier not in InventoryItem.Tier.values:
        raise ValidationError({'tier': f"Unknown tier '{tier}'."})
    quantity = _quantize(quantity)
    if quantity < 0:
        raise ValidationError({'quantity': 'Quantity cannot be negative.'})

    item = InventoryItem.objects.create(
        tier=tier,
        name=name,
        quantity=quantity,
        unit=unit or 'kg',
        min_threshold=_quantize(min_threshold),
    )
    InventoryLog.objects.create(item=item, action=InventoryLog.Action.CREATE, amount=quantity, details='Initial Stock')
    return item


@transaction.atomic
def top_up(item_id, amount, details='Manual Topup'):
    amount = _positive(amount)
    item = InventoryItem.objects.select_for_update().get(pk=item_id)
    item.quantity = _quantize(item.quantity + amount)
    item.save(update_fields=['quantity'])
    InventoryLog.objects.create(item=item, action=InventoryLog.Action.TOPUP, amount=amount, details=details)
    return item


def transfer(item_id, amount, target_tier):
    """Move stock from one tier to the item of the same name in ``target_tier``.

    Nothing is written when the source holds less than ``amount``.
    Returns ``(source, target)``.
    """
    amount = _positive(amount)
    if target_tier not in InventoryItem.Tier.values:
        raise ValidationError({'target_tier': f"Unknown tier '{target_tier}'."})

    with transaction.atomic():
        source = InventoryItem.objects.select_for_update().get(pk=item_id)
        if source.tier == target_tier:
            raise ValidationError({'target_tier': 'Source and target tier are the same.'})
        if amount > source.quantity:
            raise InsufficientStock(
                f"Only {source.quantity} {source.unit} of {source.name} available, cannot transfer {amount}."
            )

        source.quantity = _quantize(source.quantity - amount)
        source.save(update_fields=['quantity'])
        InventoryLog.objects.create(
            item=source,
            action=InventoryLog.Action.TRANSFER_OUT,
            amount=amount,
            details=f"To {InventoryItem.Tier(target_tier).label}",
        )

        target = (
            InventoryItem.objects.select_for_update()
            .filter(tier=target_tier, name__iexact=source.name)
            .first()
        )
        if target is None:
            target = InventoryItem.objects.create(
                tier=target_tier,
                name=source.name,
                quantity=Decimal("0.00"),
                unit=source.unit,
                min_threshold=source.min_threshold,
            )
        target.quantity = _quantize(target.quantity + amount)
        target.save(update_fields=['quantity'])
        InventoryLog.objects.create(
            item=target,
            action=InventoryLog.Action.TRANSFER_IN,
            amount=amount,
            details=f"From {InventoryItem.Tier(source.tier).label}",
        )

    logger.info("Transferred %s %s of %s to %s", amount, source.unit, source.name, target_tier)
    return source, target


def _floor_deduct(current, amount):
    remaining = max(Decimal("0"), Decimal(str(current)) - Decimal(str(amount)))
    return _quantize(remaining)


@transaction.atomic
def deduct(item_id, amount, details='Used'):
    """Consume stock; floors at zero and never raises for a shortfall."""
    amount = _positive(amount)
    item = InventoryItem.objects.select_for_update().get(pk=item_id)
    before = item.quantity
    item.quantity = _floor_deduct(before, amount)
    item.save(update_fields=['quantity'])
    InventoryLog.objects.create(item=item, action=InventoryLog.Action.USED, amount=before - item.quantity, details=details)
    if before - amount < 0:
        logger.warning("%s floored at zero (wanted %s, had %s)", item.name, amount, before)
    return item


@transaction.atomic
def deduct_menu_stock(menu_item_id, amount, details='Sold'):
    """Bottle stock version of :func:`deduct`. Untracked items are left alone."""
    amount = _positive(amount)
    menu_item = MenuItem.objects.select_for_update().get(pk=menu_item_id)
    if menu_item.stock is None:
        return menu_item
    before = menu_item.stock
    menu_item.stock = _floor_deduct(before, amount)
    menu_item.save(update_fields=['stock'])
    InventoryLog.objects.create(
        menu_item=menu_item, action=InventoryLog.Action.USED, amount=before - menu_item.stock, details=details,
    )
    if before - amount < 0:
        logger.warning("%s bottle stock floored at zero (wanted %s, had %s)", menu_item.name, amount, before)
    return menu_item


@transaction.atomic
def restock_menu_item(menu_item_id, amount, details='Restock'):
    amount = _positive(amount)
    menu_item = MenuItem.objects.select_for_update().get(pk=menu_item_id)
    menu_item.stock = _quantize((menu_item.stock or 0) + amount)
    menu_item.save(update_fields=['stock'])
    InventoryLog.objects.create(menu_item=menu_item, action=InventoryLog.Action.TOPUP, amount=amount, details=details)
    return menu_item


def history(item_id):
    return list(InventoryLog.objects.filter(item_id=item_id).order_by('-created_at', '-id'))


def menu_stock_history(menu_item_id):
    return list(InventoryLog.objects.filter(menu_item_id=menu_item_id).order_by('-created_at', '-id'))


def low_stock(business_unit=None):
    """Items at or below their threshold.

    Restaurant tiers use each item's ``min_threshold``; bar bottles use
    ``VENUE['BOTTLE_LOW_STOCK']``.
    """
    items = InventoryItem.objects.filter(quantity__lte=F('min_threshold'))
    bottles = MenuItem.objects.filter(
        stock__isnull=False,
        stock__lte=settings.VENUE["BOTTLE_LOW_STOCK"],
    )
    if business_unit:
        bottles = bottles.filter(business_unit=business_unit)
        if business_unit != BusinessUnit.RESTAURANT:
            items = items.none()
    return {
        'inventory': list(items),
        'menu_items': list(bottles),
    }
