from flask import Blueprint, jsonify, request

from enums import SubscriptionTierEnum, DurationEnum
from errors import NotFoundError
from extensions import db
from models import Product, PricingPlan
from utils.currency import BASE_CURRENCY
from utils.preferences import CurrencyPreferenceService
from utils.pricing import calculate_price, effective_price, plan_base_amount

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')


@catalog_bp.route('/products', methods=['GET'])
def list_products():
    products = Product.query.order_by(Product.name).all()
    return jsonify({'products': [product.to_dict() for product in products]})


@catalog_bp.route('/products/<int:product_id>/pricing-plans', methods=['GET'])
def pricing_plans(product_id):
    """
    Returns the pricing plans of a product together with the display amount of each
    enabled tier in the customer's currency.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found.")
    currency_context = CurrencyPreferenceService().current()
    plans = PricingPlan.query.filter_by(product_id=product.id).order_by(PricingPlan.id).all()

    display = {}
    for tier in SubscriptionTierEnum:
        monthly = plan_base_amount(plans, tier)
        yearly = plan_base_amount(plans, tier, yearly=True)
        display[tier.value] = {
            'monthly': currency_context.present(monthly) if monthly is not None else None,
            'yearly': currency_context.present(yearly) if yearly is not None else None,
        }
    return jsonify({
        'product': product.to_dict(),
        'pricing_plans': [plan.to_dict() for plan in plans],
        'display': display,
    })


@catalog_bp.route('/price-table', methods=['GET'])
def price_table():
    """The full tier x duration price table in the base currency."""
    return jsonify({
        'currency': BASE_CURRENCY,
        'prices': {
            tier.value: {duration.value: str(calculate_price(tier, duration)) for duration in DurationEnum}
            for tier in SubscriptionTierEnum
        },
    })


@catalog_bp.route('/quote', methods=['GET'])
def quote():
    """
    Prices one (tier, duration, optional custom price) combination and presents it
    in the customer's display currency. Unknown codes are rejected with 400.
    """
    amount = effective_price(
        request.args.get('subscription_type'),
        request.args.get('subscription_period'),
        request.args.get('custom_price'),
    )
    currency_context = CurrencyPreferenceService().current()
    return jsonify({
        'subscription_type': SubscriptionTierEnum.from_code(request.args.get('subscription_type')).value,
        'subscription_period': DurationEnum.from_code(request.args.get('subscription_period')).value,
        'price': currency_context.present(amount),
    })
