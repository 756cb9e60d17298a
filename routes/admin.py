from flask import Blueprint, jsonify, request, current_app
from flask_login import current_user
from sqlalchemy.exc import IntegrityError

from enums import SubscriptionStatusEnum, RefundStatusEnum
from errors import ValidationError, NotFoundError, ConflictError, DuplicateUserError
from extensions import db
from forms import AuthCodeForm, SubscriptionForm, SubscriptionUpdateForm, RefundTransitionForm, ProductForm
from models import AuthCode, Product, Subscription, RefundRequest, SalesAnalytics
from utils.currency import normalize_currency_code
from utils.decorators import admin_required
from utils.helpers import formdata_from_json, first_form_error, parse_datetime
from utils.maintenance import (recompute_subscription_statuses, backfill_analytics_from_subscriptions,
                               repair_analytics_consistency)
from utils.pricing import parse_amount, parse_custom_price

# Blueprint for administrator management of customers, subscriptions, refunds and batch jobs.
admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _json_payload():
    return request.get_json(silent=True) or {}


def _validated(form_cls, payload, **kwargs):
    form = form_cls(formdata=formdata_from_json(payload), **kwargs)
    if not form.validate():
        current_app.logger.warning(f"{form_cls.__name__} rejected: {first_form_error(form)}")
        raise ValidationError(first_form_error(form))
    return form


def _get_or_404(model, entity_id, label):
    entity = db.session.get(model, entity_id)
    if entity is None:
        raise NotFoundError(f"{label} {entity_id} not found.")
    return entity


# --- Catalog bootstrapping ---

@admin_bp.route('/products', methods=['POST'])
@admin_required
def create_product():
    form = _validated(ProductForm, _json_payload())
    product = Product(
        name=form.name.data.strip(),
        slug=(form.slug.data or '').strip() or None,
        category=(form.category.data or '').strip() or None,
        price=parse_amount(form.price.data, 'Price'),
    )
    db.session.add(product)
    db.session.commit()
    current_app.logger.info(f"Admin {current_user.email} added product {product.id} '{product.name}'.")
    return jsonify(product.to_dict()), 201


# --- Auth codes ---

@admin_bp.route('/auth-codes', methods=['GET'])
@admin_required
def list_auth_codes():
    """Lists auth codes, newest first. `?q=` filters on name, email or code."""
    query = AuthCode.query
    term = (request.args.get('q') or '').strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(db.or_(AuthCode.user_name.ilike(pattern),
                                    AuthCode.user_email.ilike(pattern),
                                    AuthCode.code.ilike(pattern)))
    codes = query.order_by(AuthCode.created_at.desc()).all()
    return jsonify({'auth_codes': [code.to_dict() for code in codes]})


@admin_bp.route('/auth-codes', methods=['POST'])
@admin_required
def create_auth_code():
    """
    Creates a customer identity with a freshly generated 8-character code.
    The email must not be used by another auth code.
    """
    payload = _json_payload()
    form = _validated(AuthCodeForm, payload)
    auth_code = AuthCode(
        code=AuthCode.unused_code(),
        user_name=form.user_name.data.strip(),
        user_email=form.user_email.data.strip().lower(),
        # A missing key reads as an unchecked box in WTForms; new codes are active unless told otherwise.
        is_active=form.is_active.data if 'is_active' in payload else True,
    )
    db.session.add(auth_code)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning(f"Auth code creation for {auth_code.user_email} hit the unique email constraint.")
        raise DuplicateUserError("A user with this email already exists.")
    current_app.logger.info(f"Admin {current_user.email} created auth code {auth_code.id} for {auth_code.user_email}.")
    return jsonify(auth_code.to_dict()), 201


@admin_bp.route('/auth-codes/<int:auth_code_id>', methods=['GET'])
@admin_required
def get_auth_code(auth_code_id):
    auth_code = _get_or_404(AuthCode, auth_code_id, 'Auth code')
    data = auth_code.to_dict()
    data['subscriptions'] = [subscription.to_dict() for subscription in auth_code.subscriptions]
    return jsonify(data)


@admin_bp.route('/auth-codes/<int:auth_code_id>', methods=['PATCH'])
@admin_required
def update_auth_code(auth_code_id):
    auth_code = _get_or_404(AuthCode, auth_code_id, 'Auth code')
    payload = _json_payload()
    form = _validated(AuthCodeForm, {
        'user_name': payload.get('user_name', auth_code.user_name),
        'user_email': payload.get('user_email', auth_code.user_email),
    }, original_email=auth_code.user_email)

    auth_code.user_name = form.user_name.data.strip()
    auth_code.user_email = form.user_email.data.strip().lower()
    if 'is_active' in payload:
        auth_code.is_active = bool(payload['is_active'])
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateUserError("A user with this email already exists.")
    current_app.logger.info(f"Admin {current_user.email} updated auth code {auth_code.id}.")
    return jsonify(auth_code.to_dict())


@admin_bp.route('/auth-codes/<int:auth_code_id>', methods=['DELETE'])
@admin_required
def delete_auth_code(auth_code_id):
    """
    Deletes an auth code together with its subscriptions.
    Refused while refund requests reference the customer, so the refund history is kept.
    """
    auth_code = _get_or_404(AuthCode, auth_code_id, 'Auth code')
    if RefundRequest.query.filter_by(user_auth_code_id=auth_code.id).first() is not None:
        raise ConflictError(f"Auth code {auth_code.id} has refund requests and cannot be deleted. Deactivate it instead.")
    db.session.delete(auth_code)
    db.session.commit()
    current_app.logger.info(f"Admin {current_user.email} deleted auth code {auth_code_id}.")
    return jsonify({'message': f"Auth code {auth_code_id} deleted."})


# --- Subscriptions ---

@admin_bp.route('/subscriptions', methods=['GET'])
@admin_required
def list_subscriptions():
    """Lists subscriptions, optionally filtered by `?status=` and `?user_auth_code_id=`."""
    query = Subscription.query
    if request.args.get('status'):
        query = query.filter(Subscription.status == SubscriptionStatusEnum.from_code(request.args['status']))
    if request.args.get('user_auth_code_id'):
        query = query.filter(Subscription.user_auth_code_id == request.args.get('user_auth_code_id', type=int))
    subscriptions = query.order_by(Subscription.expiry_date).all()
    return jsonify({'subscriptions': [subscription.to_dict() for subscription in subscriptions]})


@admin_bp.route('/subscriptions', methods=['POST'])
@admin_required
def create_subscription():
    """
    Grants a customer access to a product. Expiry date and status are computed from
    the start date (default: now) and the duration.
    """
    form = _validated(SubscriptionForm, _json_payload())
    auth_code = _get_or_404(AuthCode, form.user_auth_code_id.data, 'Auth code')
    product = _get_or_404(Product, form.product_id.data, 'Product')

    subscription = Subscription.build(
        auth_code, product,
        form.subscription_type.data, form.subscription_period.data,
        start_date=parse_datetime(form.start_date.data, 'start date'),
        custom_price=form.custom_price.data,
        currency=form.currency.data,
        auto_renew=form.auto_renew.data,
        notes=form.notes.data,
        username=form.username.data,
        password=form.password.data,
    )
    db.session.add(subscription)
    db.session.commit()
    current_app.logger.info(
        f"Admin {current_user.email} created subscription {subscription.id} "
        f"({subscription.subscription_type.value}/{subscription.subscription_period.value}) for auth code {auth_code.id}."
    )
    return jsonify(subscription.to_dict(include_credentials=True)), 201


@admin_bp.route('/subscriptions/<int:subscription_id>', methods=['GET'])
@admin_required
def get_subscription(subscription_id):
    subscription = _get_or_404(Subscription, subscription_id, 'Subscription')
    return jsonify(subscription.to_dict(include_credentials=True, include_refunds=True))


@admin_bp.route('/subscriptions/<int:subscription_id>', methods=['PATCH'])
@admin_required
def update_subscription(subscription_id):
    """
    Edits a subscription. Only the keys present in the body are applied; a null
    custom_price removes the override. Changing the duration recomputes the expiry
    date, and the status is re-derived unless the subscription is cancelled.
    An optional `version` rejects the edit if someone else saved first.
    """
    payload = _json_payload()
    form = _validated(SubscriptionUpdateForm, payload)
    subscription = _get_or_404(Subscription, subscription_id, 'Subscription')
    subscription.check_version(form.version.data)

    subscription.change_plan(form.subscription_type.data or None, form.subscription_period.data or None)
    if 'custom_price' in payload:
        subscription.custom_price = parse_custom_price(payload['custom_price'])
    if 'auto_renew' in payload:
        subscription.auto_renew = bool(payload['auto_renew'])
    if 'currency' in payload:
        subscription.currency = normalize_currency_code(payload['currency'])
    if 'notes' in payload:
        subscription.notes = payload['notes'] or None
    if 'username' in payload or 'password' in payload:
        credentials = subscription.get_credentials()
        subscription.set_credentials(payload.get('username', credentials['username']),
                                     payload.get('password', credentials['password']))

    db.session.commit()
    current_app.logger.info(f"Admin {current_user.email} updated subscription {subscription.id} (now version {subscription.version}).")
    return jsonify(subscription.to_dict(include_credentials=True, include_refunds=True))


@admin_bp.route('/subscriptions/<int:subscription_id>/cancel', methods=['POST'])
@admin_required
def cancel_subscription(subscription_id):
    subscription = _get_or_404(Subscription, subscription_id, 'Subscription')
    subscription.check_version(_json_payload().get('version'))
    subscription.cancel()
    db.session.commit()
    current_app.logger.info(f"Admin {current_user.email} cancelled subscription {subscription.id}.")
    return jsonify(subscription.to_dict())


@admin_bp.route('/subscriptions/<int:subscription_id>/reactivate', methods=['POST'])
@admin_required
def reactivate_subscription(subscription_id):
    """Drops a cancellation; the status is derived from the expiry date again."""
    subscription = _get_or_404(Subscription, subscription_id, 'Subscription')
    subscription.check_version(_json_payload().get('version'))
    subscription.reactivate()
    db.session.commit()
    current_app.logger.info(f"Admin {current_user.email} reactivated subscription {subscription.id} as {subscription.status.value}.")
    return jsonify(subscription.to_dict())


@admin_bp.route('/subscriptions/<int:subscription_id>', methods=['DELETE'])
@admin_required
def delete_subscription(subscription_id):
    subscription = _get_or_404(Subscription, subscription_id, 'Subscription')
    if subscription.refund_requests:
        raise ConflictError(f"Subscription {subscription.id} has refund requests and cannot be deleted. Cancel it instead.")
    db.session.delete(subscription)
    db.session.commit()
    current_app.logger.info(f"Admin {current_user.email} deleted subscription {subscription_id}.")
    return jsonify({'message': f"Subscription {subscription_id} deleted."})


# --- Refund requests ---

@admin_bp.route('/refund-requests', methods=['GET'])
@admin_required
def list_refund_requests():
    query = RefundRequest.query
    if request.args.get('status'):
        query = query.filter(RefundRequest.status == RefundStatusEnum.from_code(request.args['status']))
    refunds = query.order_by(RefundRequest.created_at.desc()).all()
    return jsonify({'refund_requests': [refund.to_dict() for refund in refunds]})


@admin_bp.route('/refund-requests/<int:refund_id>/transition', methods=['POST'])
@admin_required
def transition_refund_request(refund_id):
    """
    Moves a refund request through its workflow. Approving without an amount
    refunds the subscription's effective price.
    """
    payload = _json_payload()
    form = _validated(RefundTransitionForm, payload)
    refund = _get_or_404(RefundRequest, refund_id, 'Refund request')
    previous = refund.status
    refund.transition(
        form.status.data,
        current_user,
        admin_notes=payload.get('admin_notes'),
        refund_amount=form.refund_amount.data,
        refund_method=form.refund_method.data,
        expected_version=form.version.data,
    )
    db.session.commit()
    current_app.logger.info(
        f"Admin {current_user.email} moved refund request {refund.id} from {previous.value} to {refund.status.value}."
    )
    return jsonify(refund.to_dict())


# --- Batch procedures and analytics ---

@admin_bp.route('/maintenance/recompute-statuses', methods=['POST'])
@admin_required
def run_status_sweep():
    return jsonify(recompute_subscription_statuses())


@admin_bp.route('/maintenance/backfill-analytics', methods=['POST'])
@admin_required
def run_analytics_backfill():
    return jsonify(backfill_analytics_from_subscriptions())


@admin_bp.route('/maintenance/repair-analytics', methods=['POST'])
@admin_required
def run_analytics_repair():
    return jsonify({'message': repair_analytics_consistency()})


@admin_bp.route('/analytics', methods=['GET'])
@admin_required
def list_analytics():
    """Daily sales figures, filtered by `?start_date=`, `?end_date=` (inclusive) and `?product_id=`."""
    query = SalesAnalytics.query
    start = parse_datetime(request.args.get('start_date'), 'start date')
    end = parse_datetime(request.args.get('end_date'), 'end date')
    if start:
        query = query.filter(SalesAnalytics.date >= start.date())
    if end:
        query = query.filter(SalesAnalytics.date <= end.date())
    if request.args.get('product_id'):
        query = query.filter(SalesAnalytics.product_id == request.args.get('product_id', type=int))
    rows = query.order_by(SalesAnalytics.date.desc(), SalesAnalytics.id).all()
    return jsonify({'analytics': [row.to_dict() for row in rows]})
