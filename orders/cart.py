"""Transient carts for orders in progress.

A cart belongs to one business unit and one source (table, room, counter).
Lines are snapshots of menu items taken when they are added, so the cart
never reads the catalog again once a line exists.
"""
import enum
from dataclasses import dataclass, asdict
from decimal import Decimal

from rest_framework.exceptions import ValidationError

from .pricing import price_for_variant, validate_variant


class RemovalPolicy(enum.Enum):
    DELETE_LINE = "delete_line"   # bar: drop the whole line
    DECREMENT = "decrement"       # restaurant: one less, drop at zero


@dataclass
class CartLine:
    item_id: int
    name: str
    local_name: str
    business_unit: str
    sub_category: str
    unit_price: Decimal
    quantity: int = 1
    variant: str = None
    tracks_stock: bool = False

    @property
    def key(self):
        if self.variant:
            return f"{self.item_id}-{self.variant}"
        return str(self.item_id)

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    def to_dict(self):
        data = asdict(self)
        data['unit_price'] = str(self.unit_price)
        return data

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        data['unit_price'] = Decimal(data['unit_price'])
        return cls(**data)


class Cart:
    def __init__(self, business_unit, source_id, lines=None):
        self.business_unit = business_unit
        self.source_id = source_id
        self.lines = list(lines or [])

    def __len__(self):
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    def get_line(self, key):
        for line in self.lines:
            if line.key == key:
                return line
        return None

    def add_line(self, item, variant=None, quantity=1):
        """Add ``quantity`` of ``item``; the same item and variant merge into one line."""
        if quantity < 1:
            raise ValidationError({'quantity': 'Quantity must be at least 1.'})
        if item.business_unit != self.business_unit:
            raise ValidationError({'item': f"{item.name} is not sold by this unit."})
        if not item.is_available:
            raise ValidationError({'item': f"{item.name} is not available."})
        validate_variant(variant)

        key = f"{item.pk}-{variant}" if variant else str(item.pk)
        existing = self.get_line(key)
        if existing is not None:
            existing.quantity += quantity
            return existing

        line = CartLine(
            item_id=item.pk,
            name=item.name,
            local_name=item.local_name,
            business_unit=item.business_unit,
            sub_category=item.sub_category,
            unit_price=price_for_variant(item, variant),
            quantity=quantity,
            variant=variant,
            tracks_stock=item.tracks_stock,
        )
        self.lines.append(line)
        return line

    def remove_line(self, key, policy):
        if not isinstance(policy, RemovalPolicy):
            raise ValidationError({'policy': 'A removal policy must be chosen explicitly.'})
        line = self.get_line(key)
        if line is None:
            raise ValidationError({'line': f"No line '{key}' in this cart."})

        if policy is RemovalPolicy.DECREMENT and line.quantity > 1:
            line.quantity -= 1
            return line
        self.lines.remove(line)
        return None

    def clear(self):
        self.lines = []

    def total(self):
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def item_count(self):
        return sum(line.quantity for line in self.lines)

    def to_dict(self):
        return {
            'business_unit': self.business_unit,
            'source_id': self.source_id,
            'lines': [line.to_dict() for line in self.lines],
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            data['business_unit'],
            data['source_id'],
            [CartLine.from_dict(line) for line in data.get('lines', [])],
        )


class CartStore:
    """Keeps one cart per (business unit, source) in the Django session."""
    SESSION_KEY = 'carts'

    def __init__(self, session):
        self.session = session

    @staticmethod
    def key_for(business_unit, source_id):
        return f"{business_unit}:{source_id}"

    def load(self, business_unit, source_id):
        carts = self.session.get(self.SESSION_KEY, {})
        data = carts.get(self.key_for(business_unit, source_id))
        if data is None:
            return Cart(business_unit, source_id)
        return Cart.from_dict(data)

    def save(self, cart):
        carts = dict(self.session.get(self.SESSION_KEY, {}))
        key = self.key_for(cart.business_unit, cart.source_id)
        if cart.lines:
            carts[key] = cart.to_dict()
        else:
            carts.pop(key, None)
        self.session[self.SESSION_KEY] = carts
        self.session.modified = True
