from flask import Blueprint, jsonify, request, g

from errors import ValidationError, NotFoundError
from extensions import db
from forms import CartItemForm, CartQuantityForm
from models import Product
from utils.cart import SessionCartStore, checkout as checkout_cart
from utils.decorators import auth_code_required
from utils.helpers import formdata_from_json, first_form_error
from utils.preferences import CurrencyPreferenceService

cart_bp = Blueprint('cart', __name__, url_prefix='/cart')


def _cart_response(cart, status=200):
    return jsonify(cart.to_dict(CurrencyPreferenceService().current())), status


@cart_bp.route('', methods=['GET'])
def view_cart():
    return _cart_response(SessionCartStore().load())


@cart_bp.route('/items', methods=['POST'])
def add_item():
    """Adds one unit of a product on the chosen plan; repeating the add bumps the quantity."""
    form = CartItemForm(formdata=formdata_from_json(request.get_json(silent=True)))
    if not form.validate():
        raise ValidationError(first_form_error(form))

    product = db.session.get(Product, form.product_id.data)
    if product is None:
        raise NotFoundError(f"Product {form.product_id.data} not found.")

    store = SessionCartStore()
    cart = store.load()
    cart.add(product, form.subscription_type.data, form.subscription_period.data)
    store.save(cart)
    return _cart_response(cart, 201)


@cart_bp.route('/items/<int:product_id>', methods=['PATCH'])
def update_item(product_id):
    """Sets the quantity of a line. Zero removes it."""
    form = CartQuantityForm(formdata=formdata_from_json(request.get_json(silent=True)))
    if not form.validate():
        raise ValidationError(first_form_error(form))

    store = SessionCartStore()
    cart = store.load()
    cart.update(product_id, form.quantity.data)
    store.save(cart)
    return _cart_response(cart)


@cart_bp.route('/items/<int:product_id>', methods=['DELETE'])
def remove_item(product_id):
    store = SessionCartStore()
    cart = store.load()
    cart.remove(product_id)
    store.save(cart)
    return _cart_response(cart)


@cart_bp.route('', methods=['DELETE'])
def clear_cart():
    store = SessionCartStore()
    cart = store.load()
    cart.clear()
    store.save(cart)
    return _cart_response(cart)


@cart_bp.route('/checkout', methods=['POST'])
@auth_code_required
def checkout():
    """
    Converts the cart into subscriptions for the signed-in customer, one per unit,
    and empties the cart.
    """
    store = SessionCartStore()
    cart = store.load()
    currency_context = CurrencyPreferenceService().current()
    subscriptions = checkout_cart(cart, g.auth_code, currency=currency_context.selected_currency)
    store.save(cart)
    return jsonify({
        'subscriptions': [subscription.to_dict(currency_context) for subscription in subscriptions],
    }), 201
