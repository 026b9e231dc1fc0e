"""Menu catalog reads and whole-list writes per business unit."""
import logging

from django.db import transaction
from rest_framework.exceptions import ValidationError

from .models import InventoryLog, MenuItem

logger = logging.getLogger(__name__)

# Fields a full replacement may set; stock changes go through the ledger
WRITABLE_FIELDS = (
    'name', 'local_name', 'price', 'category', 'sub_category', 'is_available',
    'variant_prices', 'is_veg', 'is_recommended',
)


def menu_snapshot(business_unit, available_only=False):
    queryset = MenuItem.objects.filter(business_unit=business_unit)
    if available_only:
        queryset = queryset.filter(is_available=True)
    return list(queryset)


@transaction.atomic
def replace_menu(business_unit, items):
    """Replace the unit's catalog with ``items`` (a list of validated dicts).

    Entries carrying an ``id`` update that item, entries without one are
    created. Items missing from the list are retired (made unavailable)
    rather than deleted, so historical orders keep their back-reference.
    """
    existing = {item.pk: item for item in MenuItem.objects.select_for_update().filter(business_unit=business_unit)}
    kept = set()
    result = []

    for data in items:
        data = dict(data)
        item_id = data.pop('id', None)
        if item_id is not None:
            item = existing.get(item_id)
            if item is None:
                raise ValidationError({'id': f"Menu item {item_id} does not belong to {business_unit}."})
            for field in WRITABLE_FIELDS:
                if field in data:
                    setattr(item, field, data[field])
            item.save()
            kept.add(item.pk)
        else:
            fields = {field: data[field] for field in WRITABLE_FIELDS if field in data}
            item = MenuItem.objects.create(business_unit=business_unit, stock=data.get('stock'), **fields)
            if item.stock is not None:
                InventoryLog.objects.create(
                    menu_item=item, action=InventoryLog.Action.CREATE, amount=item.stock, details='Initial Stock',
                )
        result.append(item)

    retired = [pk for pk in existing if pk not in kept]
    if retired:
        MenuItem.objects.filter(pk__in=retired).update(is_available=False)
        logger.info("Retired %d menu items from %s", len(retired), business_unit)

    return result


def set_availability(menu_item_id, is_available):
    updated = MenuItem.objects.filter(pk=menu_item_id).update(is_available=is_available)
    if not updated:
        raise MenuItem.DoesNotExist(f"Menu item {menu_item_id} not found")
    return MenuItem.objects.get(pk=menu_item_id)
