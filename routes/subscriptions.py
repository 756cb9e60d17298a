from flask import Blueprint, jsonify, request, g, current_app

from errors import ValidationError, NotFoundError
from extensions import db
from forms import RefundRequestForm
from models import Subscription, RefundRequest
from utils.decorators import auth_code_required
from utils.helpers import formdata_from_json, first_form_error
from utils.preferences import CurrencyPreferenceService

# Blueprint for the signed-in customer's own subscriptions and refund requests.
subscriptions_bp = Blueprint('subscriptions', __name__, url_prefix='/me')


def _owned_subscription(subscription_id):
    """Loads a subscription of the signed-in customer; other customers' subscriptions look missing."""
    subscription = db.session.get(Subscription, subscription_id)
    if subscription is None or subscription.user_auth_code_id != g.auth_code.id:
        raise NotFoundError(f"Subscription {subscription_id} not found.")
    return subscription


@subscriptions_bp.route('', methods=['GET'])
@auth_code_required
def profile():
    return jsonify(g.auth_code.to_dict())


@subscriptions_bp.route('/subscriptions', methods=['GET'])
@auth_code_required
def my_subscriptions():
    """
    Lists the customer's subscriptions with status, days left, price in the
    selected display currency, account credentials and refund history.
    """
    currency_context = CurrencyPreferenceService().current()
    return jsonify({
        'currency': currency_context.to_dict(),
        'subscriptions': [
            subscription.to_dict(currency_context, include_credentials=True, include_refunds=True)
            for subscription in g.auth_code.subscriptions
        ],
    })


@subscriptions_bp.route('/subscriptions/<int:subscription_id>', methods=['GET'])
@auth_code_required
def my_subscription(subscription_id):
    subscription = _owned_subscription(subscription_id)
    currency_context = CurrencyPreferenceService().current()
    return jsonify(subscription.to_dict(currency_context, include_credentials=True, include_refunds=True))


@subscriptions_bp.route('/refund-requests', methods=['GET'])
@auth_code_required
def my_refund_requests():
    requests = RefundRequest.query.filter_by(user_auth_code_id=g.auth_code.id)\
        .order_by(RefundRequest.created_at.desc()).all()
    return jsonify({'refund_requests': [refund.to_dict() for refund in requests]})


@subscriptions_bp.route('/refund-requests', methods=['POST'])
@auth_code_required
def file_refund_request():
    """
    Files a refund request for one of the customer's subscriptions.
    The request starts in 'pending'; the subscription itself is not changed.
    """
    form = RefundRequestForm(formdata=formdata_from_json(request.get_json(silent=True)))
    if not form.validate():
        current_app.logger.warning(f"Refund request from auth code {g.auth_code.id} rejected: {first_form_error(form)}")
        raise ValidationError(first_form_error(form))

    subscription = _owned_subscription(form.subscription_id.data)
    refund = RefundRequest.create(subscription, g.auth_code, form.reason.data, form.description.data)
    db.session.add(refund)
    db.session.commit()
    current_app.logger.info(f"Refund request {refund.id} filed for subscription {subscription.id} by auth code {g.auth_code.id}.")
    return jsonify(refund.to_dict()), 201
