import pytest
from datetime import datetime
from cryptography.fernet import Fernet
from app import create_app
from config import Config
from extensions import db as _db # Alias to avoid fixture name conflict
from models import AdminUser, AuthCode, Product, Subscription

ADMIN_EMAIL = 'admin@example.com'
ADMIN_PASSWORD = 'correct-horse-battery'

class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:' # Use in-memory SQLite for tests
    WTF_CSRF_ENABLED = False
    SECRET_KEY = 'test-secret-key' # Sessions (cart, auth code, currency) are signed with it
    FERNET_KEY = Fernet.generate_key() # Valid 32-byte url-safe key for credential encryption
    LOG_LEVEL = 'DEBUG'

@pytest.fixture(scope='session')
def app():
    """
    Session-wide test Flask application.
    Ensures the app is created once per test session with TestConfig.
    """
    app_instance = create_app(config_class=TestConfig)
    return app_instance

@pytest.fixture(scope='function')
def app_context(app):
    """
    Function-scoped application context.
    Requests made with the test client inside it reuse this context, so tests and
    views share the same database session.
    """
    with app.app_context():
        yield

@pytest.fixture(scope='function')
def db(app_context):
    """
    Function-scoped database fixture.
    Creates all database tables before each test and drops them afterwards.
    """
    _db.create_all()
    yield _db
    _db.session.remove()
    _db.drop_all()

@pytest.fixture(scope='function')
def client(app):
    """
    Function-scoped test client: each test starts with an empty session cookie
    (no cart, no signed-in auth code, base currency).
    """
    return app.test_client()

@pytest.fixture
def now():
    return datetime(2024, 6, 1, 12, 0, 0)

@pytest.fixture
def make_auth_code(db):
    """Factory for committed AuthCode rows."""
    counter = {'n': 0}

    def _make(user_name='Ada Customer', user_email=None, is_active=True, code=None):
        counter['n'] += 1
        auth_code = AuthCode(
            code=code or AuthCode.unused_code(),
            user_name=user_name,
            user_email=user_email or f"customer{counter['n']}@example.com",
            is_active=is_active,
        )
        db.session.add(auth_code)
        db.session.commit()
        return auth_code
    return _make

@pytest.fixture
def make_product(db):
    """Factory for committed Product rows."""
    def _make(name='Netflix Premium', slug=None, category='streaming', price=None):
        product = Product(name=name, slug=slug, category=category, price=price)
        db.session.add(product)
        db.session.commit()
        return product
    return _make

@pytest.fixture
def make_subscription(db, make_auth_code, make_product):
    """Factory for committed subscriptions built through Subscription.build."""
    def _make(auth_code=None, product=None, tier='shared', duration='1_month', **kwargs):
        subscription = Subscription.build(
            auth_code or make_auth_code(),
            product or make_product(),
            tier, duration, **kwargs)
        db.session.add(subscription)
        db.session.commit()
        return subscription
    return _make

@pytest.fixture
def admin_user(db):
    admin = AdminUser(email=ADMIN_EMAIL, full_name='Store Admin')
    admin.set_password(ADMIN_PASSWORD)
    db.session.add(admin)
    db.session.commit()
    return admin

@pytest.fixture
def admin_client(client, admin_user):
    """Test client logged in as an administrator."""
    response = client.post('/auth/login', json={'email': ADMIN_EMAIL, 'password': ADMIN_PASSWORD})
    assert response.status_code == 200
    return client

@pytest.fixture
def customer(make_auth_code):
    return make_auth_code(user_name='Grace Customer', user_email='grace@example.com')

@pytest.fixture
def customer_client(client, customer):
    """Test client signed in with the `customer` auth code."""
    response = client.post('/auth/code-login', json={'code': customer.code.lower()})
    assert response.status_code == 200
    return client
