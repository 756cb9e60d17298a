import pytest
from datetime import datetime, timedelta
from enums import SubscriptionTierEnum, DurationEnum
from forms import AuthCodeForm
from models import AdminUser, AuthCode, RefundRequest, SalesAnalytics, Subscription

def _refund_for(db, subscription):
    refund = RefundRequest.create(subscription, subscription.auth_code, 'technical-issues', 'Cannot log in.')
    db.session.add(refund)
    db.session.commit()
    return refund

# --- Access control ---

@pytest.mark.parametrize("method, url", [
    ('get', '/admin/auth-codes'),
    ('post', '/admin/subscriptions'),
    ('post', '/admin/maintenance/recompute-statuses'),
    ('get', '/admin/analytics'),
])
def test_admin_routes_require_admin(client, db, method, url):
    response = getattr(client, method)(url, json={})
    assert response.status_code == 403
    assert response.get_json() == {'error': 'Administrator login required.'}

def test_admin_login_wrong_password(client, admin_user):
    response = client.post('/auth/login', json={'email': admin_user.email, 'password': 'nope'})
    assert response.status_code == 403
    assert response.get_json()['error'] == 'Invalid email or password.'

def test_admin_logout(admin_client):
    assert admin_client.post('/auth/logout').status_code == 200
    assert admin_client.get('/admin/auth-codes').status_code == 403

# --- Auth codes ---

def test_create_auth_code(admin_client):
    response = admin_client.post('/admin/auth-codes', json={'user_name': 'Ada', 'user_email': 'ADA@example.com'})
    assert response.status_code == 201
    data = response.get_json()
    assert len(data['code']) == 8
    assert data['code'].isalnum() and data['code'].upper() == data['code']
    assert data['user_email'] == 'ada@example.com'
    assert data['is_active'] is True

def test_create_auth_code_inactive(admin_client):
    response = admin_client.post('/admin/auth-codes', json={'user_name': 'Ada', 'user_email': 'ada@example.com', 'is_active': False})
    assert response.status_code == 201
    assert response.get_json()['is_active'] is False

def test_create_auth_code_duplicate_email_rejected_by_form(admin_client, make_auth_code):
    make_auth_code(user_email='ada@example.com')
    response = admin_client.post('/admin/auth-codes', json={'user_name': 'Ada', 'user_email': 'ada@example.com'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'A user with this email already exists.'

def test_create_auth_code_duplicate_email_caught_by_constraint(admin_client, make_auth_code, mocker):
    # Simulates a concurrent insert that passed the form check.
    make_auth_code(user_email='ada@example.com')
    # A plain function: WTForms would collect a MagicMock class attribute as a form field.
    mocker.patch.object(AuthCodeForm, 'validate_user_email', new=lambda self, field: None)
    response = admin_client.post('/admin/auth-codes', json={'user_name': 'Ada', 'user_email': 'ada@example.com'})
    assert response.status_code == 409
    assert response.get_json()['error'] == 'A user with this email already exists.'
    assert AuthCode.query.count() == 1

def test_update_auth_code_deactivates(admin_client, make_auth_code):
    auth_code = make_auth_code()
    response = admin_client.patch(f'/admin/auth-codes/{auth_code.id}', json={'is_active': False})
    assert response.status_code == 200
    assert response.get_json()['is_active'] is False
    assert response.get_json()['user_email'] == auth_code.user_email

def test_list_auth_codes_search(admin_client, make_auth_code):
    make_auth_code(user_name='Ada Lovelace', user_email='ada@example.com')
    make_auth_code(user_name='Grace Hopper', user_email='grace@example.com')
    response = admin_client.get('/admin/auth-codes?q=grace')
    names = [code['user_name'] for code in response.get_json()['auth_codes']]
    assert names == ['Grace Hopper']

def test_delete_auth_code_deletes_subscriptions(admin_client, make_auth_code, make_subscription):
    auth_code = make_auth_code()
    make_subscription(auth_code=auth_code)
    response = admin_client.delete(f'/admin/auth-codes/{auth_code.id}')
    assert response.status_code == 200
    assert Subscription.query.count() == 0

def test_delete_auth_code_with_refunds_is_refused(db, admin_client, make_subscription):
    subscription = make_subscription()
    _refund_for(db, subscription)
    response = admin_client.delete(f'/admin/auth-codes/{subscription.user_auth_code_id}')
    assert response.status_code == 409
    assert db.session.get(AuthCode, subscription.user_auth_code_id) is not None

def test_missing_auth_code_is_404(admin_client, db):
    response = admin_client.get('/admin/auth-codes/999')
    assert response.status_code == 404
    assert response.get_json()['error'] == 'Auth code 999 not found.'

# --- Subscriptions ---

def test_create_subscription(admin_client, make_auth_code, make_product):
    auth_code, product = make_auth_code(), make_product()
    response = admin_client.post('/admin/subscriptions', json={
        'user_auth_code_id': auth_code.id,
        'product_id': product.id,
        'subscription_type': 'private',
        'subscription_period': '1_year',
        'start_date': '2024-05-01T00:00:00',
        'username': 'shared@stream.tv',
        'password': 'p4ss',
    })
    assert response.status_code == 201
    data = response.get_json()
    assert data['expiry_date'] == '2025-05-01T00:00:00'
    assert data['price']['formatted'] == '₦120.00'
    assert data['credentials'] == {'username': 'shared@stream.tv', 'password': 'p4ss'}
    assert data['version'] == 1

@pytest.mark.parametrize("override, status, error_part", [
    ({'subscription_type': 'family'}, 400, "Invalid subscription tier 'family'"),
    ({'custom_price': -1}, 400, 'Custom price cannot be negative.'),
    ({'product_id': 999}, 404, 'Product 999 not found.'),
    ({'start_date': 'yesterday'}, 400, 'Invalid start date.'),
])
def test_create_subscription_rejects_bad_input(admin_client, make_auth_code, make_product, override, status, error_part):
    payload = {'user_auth_code_id': make_auth_code().id, 'product_id': make_product().id,
               'subscription_type': 'shared', 'subscription_period': '1_month'}
    payload.update(override)
    response = admin_client.post('/admin/subscriptions', json=payload)
    assert response.status_code == status
    assert error_part in response.get_json()['error']
    assert Subscription.query.count() == 0

def test_update_subscription_applies_present_keys_only(admin_client, make_subscription):
    subscription = make_subscription(tier='shared', duration='1_month', custom_price='3', notes='keep me')
    start = subscription.start_date
    response = admin_client.patch(f'/admin/subscriptions/{subscription.id}', json={
        'subscription_period': '1_year', 'custom_price': None, 'version': 1,
    })
    assert response.status_code == 200
    data = response.get_json()
    assert data['subscription_period'] == '1_year'
    assert data['expiry_date'] == (start + timedelta(days=365)).isoformat()
    assert data['custom_price'] is None
    assert data['price']['base_amount'] == '40.00'
    assert data['notes'] == 'keep me'
    assert data['version'] == 2

def test_update_subscription_stale_version(admin_client, make_subscription):
    subscription = make_subscription()
    response = admin_client.patch(f'/admin/subscriptions/{subscription.id}', json={'notes': 'x', 'version': 7})
    assert response.status_code == 409
    assert 'modified by someone else' in response.get_json()['error']

def test_update_subscription_credentials_keep_other_value(admin_client, make_subscription):
    subscription = make_subscription(username='old@stream.tv', password='old-pass')
    response = admin_client.patch(f'/admin/subscriptions/{subscription.id}', json={'password': 'new-pass'})
    assert response.get_json()['credentials'] == {'username': 'old@stream.tv', 'password': 'new-pass'}

def test_cancel_is_kept_by_sweep_and_reactivate(admin_client, make_subscription):
    subscription = make_subscription()
    assert admin_client.post(f'/admin/subscriptions/{subscription.id}/cancel').get_json()['status'] == 'cancelled'
    admin_client.post('/admin/maintenance/recompute-statuses')
    assert admin_client.get(f'/admin/subscriptions/{subscription.id}').get_json()['status'] == 'cancelled'
    assert admin_client.post(f'/admin/subscriptions/{subscription.id}/reactivate').get_json()['status'] == 'active'

def test_list_subscriptions_by_status(admin_client, make_subscription):
    make_subscription()
    expired = make_subscription(start_date=datetime.utcnow() - timedelta(days=60))
    response = admin_client.get('/admin/subscriptions?status=expired')
    assert [row['id'] for row in response.get_json()['subscriptions']] == [expired.id]
    assert admin_client.get('/admin/subscriptions?status=gone').status_code == 400

def test_delete_subscription(admin_client, make_subscription):
    subscription = make_subscription()
    assert admin_client.delete(f'/admin/subscriptions/{subscription.id}').status_code == 200
    assert admin_client.get(f'/admin/subscriptions/{subscription.id}').status_code == 404

def test_delete_subscription_with_refunds_is_refused(db, admin_client, make_subscription):
    subscription = make_subscription()
    _refund_for(db, subscription)
    response = admin_client.delete(f'/admin/subscriptions/{subscription.id}')
    assert response.status_code == 409

# --- Refund requests ---

def test_approve_refund_defaults_amount(db, admin_client, make_subscription):
    subscription = make_subscription(tier='private', duration='3_months')
    refund = _refund_for(db, subscription)
    response = admin_client.post(f'/admin/refund-requests/{refund.id}/transition',
                                 json={'status': 'approved', 'admin_notes': 'Confirmed.'})
    assert response.status_code == 200
    data = response.get_json()
    assert data['status'] == 'approved'
    assert data['refund_amount'] == '37.50'
    assert data['admin_notes'] == 'Confirmed.'
    assert data['processed_at'] is not None
    assert admin_client.get(f'/admin/subscriptions/{subscription.id}').get_json()['status'] == 'active'

def test_refund_invalid_transition_is_409(db, admin_client, make_subscription):
    refund = _refund_for(db, make_subscription())
    response = admin_client.post(f'/admin/refund-requests/{refund.id}/transition', json={'status': 'completed'})
    assert response.status_code == 409
    assert "cannot move from 'pending' to 'completed'" in response.get_json()['error']

def test_refund_transition_validates_payload(db, admin_client, make_subscription):
    refund = _refund_for(db, make_subscription())
    response = admin_client.post(f'/admin/refund-requests/{refund.id}/transition',
                                 json={'status': 'approved', 'refund_amount': -3})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Refund amount cannot be negative.'

def test_list_refund_requests_by_status(db, admin_client, make_subscription):
    refund = _refund_for(db, make_subscription())
    assert [r['id'] for r in admin_client.get('/admin/refund-requests?status=pending').get_json()['refund_requests']] == [refund.id]
    assert admin_client.get('/admin/refund-requests?status=approved').get_json()['refund_requests'] == []

# --- Batch procedures ---

def test_maintenance_endpoints(admin_client, make_subscription):
    make_subscription(start_date=datetime.utcnow() - timedelta(days=40), now=datetime.utcnow() - timedelta(days=40))
    sweep = admin_client.post('/admin/maintenance/recompute-statuses').get_json()
    assert sweep['expired_count'] == 1
    backfill = admin_client.post('/admin/maintenance/backfill-analytics').get_json()
    assert backfill == {'processed_records': 1, 'created_analytics_records': 1}
    repair = admin_client.post('/admin/maintenance/repair-analytics').get_json()
    assert repair['message'] == 'Analytics repaired: 0 updated, 0 created, 0 removed.'
    rows = admin_client.get('/admin/analytics').get_json()['analytics']
    assert len(rows) == 1
    assert rows[0]['expired_subscriptions'] == 1

def test_analytics_date_filter(admin_client, db, make_product):
    product = make_product()
    db.session.add(SalesAnalytics(date=datetime(2024, 5, 1).date(), product_id=product.id,
                                  subscription_type=SubscriptionTierEnum.SHARED, subscription_period=DurationEnum.ONE_MONTH))
    db.session.commit()
    assert len(admin_client.get('/admin/analytics?start_date=2024-05-02').get_json()['analytics']) == 0
    assert len(admin_client.get('/admin/analytics?end_date=2024-05-01').get_json()['analytics']) == 1

def test_create_product(admin_client):
    response = admin_client.post('/admin/products', json={'name': 'Canva Pro', 'category': 'design', 'price': 2500})
    assert response.status_code == 201
    assert response.get_json()['price'] == '2500.00'

# --- CLI ---

def test_create_admin_command(app, db):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['create-admin', '--email', 'Ops@Example.com', '--password', 'pw-123456'])
    assert result.exit_code == 0
    admin = AdminUser.query.filter_by(email='ops@example.com').one()
    assert admin.check_password('pw-123456')
    again = runner.invoke(args=['create-admin', '--email', 'ops@example.com', '--password', 'x'])
    assert again.exit_code != 0

def test_recompute_statuses_command(app, db, make_subscription):
    make_subscription()
    result = app.test_cli_runner().invoke(args=['recompute-statuses'])
    assert result.exit_code == 0
    assert 'Updated 0 subscriptions' in result.output
