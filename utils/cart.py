"""
Client-held cart of candidate purchases.

The cart lives in the signed session cookie and has no server identity until
checkout turns each unit of each line into its own Subscription.
"""
from datetime import datetime

from flask import session, current_app
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from errors import CoreError, ValidationError, NotFoundError
from enums import SubscriptionTierEnum, DurationEnum
from models import Product, Subscription
from utils.currency import CurrencyContext
from utils.pricing import calculate_price

CART_SESSION_KEY = 'cart'
MAX_LINE_QUANTITY = 20


def _parse_quantity(quantity):
    if isinstance(quantity, bool) or (isinstance(quantity, float) and not quantity.is_integer()):
        raise ValidationError("Quantity must be a whole number.")
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationError("Quantity must be a whole number.")
    if quantity < 0:
        raise ValidationError("Quantity cannot be negative.")
    if quantity > MAX_LINE_QUANTITY:
        raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}.")
    return quantity


class CartLine:
    """
    One product in the cart with its chosen plan and quantity. Lines are always
    priced from the table; price overrides are an administrator action.
    """

    def __init__(self, product_id, product_name, tier, duration, quantity=1):
        self.product_id = int(product_id)
        self.product_name = product_name
        self.tier = SubscriptionTierEnum.from_code(tier)
        self.duration = DurationEnum.from_code(duration)
        self.quantity = _parse_quantity(quantity)

    @property
    def unit_price(self):
        return calculate_price(self.tier, self.duration)

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    def to_session(self):
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'tier': self.tier.value,
            'duration': self.duration.value,
            'quantity': self.quantity,
        }

    @classmethod
    def from_session(cls, data):
        return cls(data['product_id'], data.get('product_name'), data['tier'], data['duration'],
                   quantity=data.get('quantity', 1))


class Cart:
    """
    Lines keyed by product id. Adding a product that is already in the cart bumps its
    quantity and takes the newly chosen plan.
    """

    def __init__(self, lines=None):
        self.lines = {line.product_id: line for line in (lines or [])}

    def add(self, product, tier, duration):
        """
        Adds one unit of `product` (anything with `id` and `name`) on the given plan.

        Returns:
            CartLine: The created or updated line.

        Raises:
            ValidationError: On unknown codes or when the line would exceed MAX_LINE_QUANTITY.
        """
        existing = self.lines.get(product.id)
        quantity = existing.quantity + 1 if existing else 1
        line = CartLine(product.id, product.name, tier, duration, quantity=quantity)
        self.lines[line.product_id] = line
        return line

    def update(self, product_id, quantity):
        """
        Sets the quantity of a line; zero removes it.

        Raises:
            ValidationError: On a negative, non-integer or too large quantity.
            NotFoundError: If the product is not in the cart and the quantity is not zero.
        """
        quantity = _parse_quantity(quantity)
        product_id = int(product_id)
        if quantity == 0:
            self.remove(product_id)
            return None
        line = self.lines.get(product_id)
        if line is None:
            raise NotFoundError(f"Product {product_id} is not in your cart.")
        line.quantity = quantity
        return line

    def remove(self, product_id):
        """Deletes the line for `product_id`; does nothing if there is none."""
        self.lines.pop(int(product_id), None)

    def clear(self):
        self.lines = {}

    def __contains__(self, product_id):
        return int(product_id) in self.lines

    def __len__(self):
        return len(self.lines)

    @property
    def total_items(self):
        return sum(line.quantity for line in self.lines.values())

    @property
    def total_price(self):
        return sum((line.line_total for line in self.lines.values()), start=0)

    def to_dict(self, currency_context=None):
        currency_context = currency_context or CurrencyContext()
        return {
            'items': [
                {
                    'product_id': line.product_id,
                    'product_name': line.product_name,
                    'subscription_type': line.tier.value,
                    'subscription_period': line.duration.value,
                    'quantity': line.quantity,
                    'unit_price': currency_context.present(line.unit_price),
                    'line_total': currency_context.present(line.line_total),
                }
                for line in self.lines.values()
            ],
            'total_items': self.total_items,
            'total_price': currency_context.present(self.total_price),
        }


class SessionCartStore:
    """Loads and saves the cart in the session cookie."""

    def load(self):
        return Cart([CartLine.from_session(data) for data in session.get(CART_SESSION_KEY, [])])

    def save(self, cart):
        session.permanent = True
        session[CART_SESSION_KEY] = [line.to_session() for line in cart.lines.values()]


def checkout(cart, auth_code, currency=None, now=None):
    """
    Turns the cart into subscriptions owned by `auth_code`: one independent Subscription
    per unit, so a line with quantity 3 yields three subscriptions. All of them are
    written in a single transaction and the cart is emptied on success.

    Raises:
        ValidationError: If the cart is empty.
        NotFoundError: If a product in the cart no longer exists (nothing is written).
    """
    if not cart.lines:
        raise ValidationError("Your cart is empty.")
    now = now or datetime.utcnow()

    products = {}
    for product_id in cart.lines:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} is no longer available. Please remove it from your cart.")
        products[product_id] = product

    created = []
    try:
        for line in cart.lines.values():
            for _ in range(line.quantity):
                created.append(Subscription.build(
                    auth_code, products[line.product_id], line.tier, line.duration,
                    currency=currency, now=now,
                ))
        db.session.add_all(created)
        db.session.commit()
    except (CoreError, SQLAlchemyError) as e:
        db.session.rollback()
        current_app.logger.error(f"Checkout failed for auth code {auth_code.id}: {e}", exc_info=True)
        raise

    current_app.logger.info(f"Checkout for auth code {auth_code.id} created {len(created)} subscriptions.")
    cart.clear()
    return created
