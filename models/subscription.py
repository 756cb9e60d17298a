from datetime import datetime
from decimal import Decimal
from extensions import db # Import the SQLAlchemy instance.
from errors import StaleWriteError, ValidationError
from utils.currency import BASE_CURRENCY, CurrencyContext, normalize_currency_code
from utils.lifecycle import compute_expiry_date, derive_status, days_until_expiry
from utils.pricing import calculate_price, parse_custom_price
from utils.security import encrypt_value, decrypt_value
from enums import SubscriptionTierEnum, DurationEnum, SubscriptionStatusEnum


class Subscription(db.Model):
    """
    Time-bound access of one customer (AuthCode) to one product.

    The expiry date is always start_date plus the duration implied by the duration
    code. The status is derived from the expiry date: the batch sweep materializes it
    and every write re-derives it, except that an administrator's cancellation sticks.
    All prices are stored in the base currency.
    """
    __tablename__ = 'user_subscriptions' # Specifies the database table name.

    id = db.Column(db.Integer, primary_key=True)

    # --- Foreign Keys ---
    user_auth_code_id = db.Column(db.Integer, db.ForeignKey('user_auth_codes.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)

    # --- Plan ---
    subscription_type = db.Column(db.Enum(SubscriptionTierEnum), nullable=False, default=SubscriptionTierEnum.SHARED)
    subscription_period = db.Column(db.Enum(DurationEnum), nullable=False, default=DurationEnum.ONE_MONTH)

    # --- Lifecycle Dates and Status ---
    start_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    expiry_date = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(db.Enum(SubscriptionStatusEnum), nullable=False, default=SubscriptionStatusEnum.ACTIVE, index=True)
    auto_renew = db.Column(db.Boolean, nullable=False, default=False)

    # --- Money ---
    # Overrides the calculated price when not NULL (zero included).
    custom_price = db.Column(db.Numeric(10, 2), nullable=True)
    currency = db.Column(db.String(3), nullable=False, default=BASE_CURRENCY)

    # --- Account credentials shown to the owner, Fernet-encrypted at rest ---
    username_encrypted = db.Column(db.Text, nullable=True)
    password_encrypted = db.Column(db.Text, nullable=True)

    notes = db.Column(db.Text, nullable=True)

    # --- Timestamps and concurrency ---
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    # Incremented by SQLAlchemy on every UPDATE; a concurrent flush of a stale row raises StaleDataError.
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    product = db.relationship('Product')

    @classmethod
    def build(cls, auth_code, product, tier, duration, start_date=None, custom_price=None,
              currency=None, auto_renew=False, notes=None, username=None, password=None, now=None):
        """
        Creates (without adding to the session) a subscription with its expiry date and status computed.

        Raises:
            errors.ValidationError: On unknown tier/duration/currency codes or an invalid custom price.
        """
        now = now or datetime.utcnow()
        start_date = start_date or now
        duration = DurationEnum.from_code(duration)
        subscription = cls(
            auth_code=auth_code,
            product=product,
            subscription_type=SubscriptionTierEnum.from_code(tier),
            subscription_period=duration,
            start_date=start_date,
            expiry_date=compute_expiry_date(start_date, duration),
            auto_renew=bool(auto_renew),
            custom_price=parse_custom_price(custom_price),
            currency=normalize_currency_code(currency),
            notes=notes or None,
        )
        subscription.set_credentials(username, password)
        subscription.status = derive_status(subscription.expiry_date, now)
        return subscription

    # --- Pricing ---

    @property
    def calculated_price(self):
        return calculate_price(self.subscription_type, self.subscription_period)

    @property
    def effective_price(self):
        """The custom price when set, otherwise the calculated table price."""
        if self.custom_price is not None:
            return Decimal(self.custom_price)
        return self.calculated_price

    # --- Lifecycle ---

    def refresh_status(self, now=None):
        """
        Re-derives the status from the expiry date. Cancelled subscriptions are left alone.

        Returns:
            bool: True if the status changed.
        """
        new_status = derive_status(self.expiry_date, now, current_status=self.status)
        if new_status != self.status:
            self.status = new_status
            return True
        return False

    def change_plan(self, tier=None, duration=None, now=None):
        """Changes tier and/or duration, keeping expiry_date == start_date + duration."""
        if tier is not None:
            self.subscription_type = SubscriptionTierEnum.from_code(tier)
        if duration is not None:
            self.subscription_period = DurationEnum.from_code(duration)
            self.expiry_date = compute_expiry_date(self.start_date, self.subscription_period)
        self.refresh_status(now)

    def cancel(self):
        self.status = SubscriptionStatusEnum.CANCELLED

    def reactivate(self, now=None):
        """Explicit administrator reactivation: drops the cancellation and re-derives from the dates."""
        self.status = derive_status(self.expiry_date, now)

    def days_until_expiry(self, now=None):
        return days_until_expiry(self.expiry_date, now)

    def check_version(self, expected_version):
        """
        Optional write precondition for administrator edits.

        Raises:
            StaleWriteError: If the caller edited an older version of this subscription.
        """
        if expected_version is None:
            return
        try:
            expected_version = int(expected_version)
        except (TypeError, ValueError):
            raise ValidationError("Version must be a whole number.")
        if expected_version != self.version:
            raise StaleWriteError(
                f"Subscription {self.id} was modified by someone else (version {self.version}, you sent {expected_version}). Reload and try again."
            )

    # --- Credentials ---

    def set_credentials(self, username, password):
        self.username_encrypted = encrypt_value(username) if username else None
        self.password_encrypted = encrypt_value(password) if password else None

    def get_credentials(self):
        return {
            'username': decrypt_value(self.username_encrypted),
            'password': decrypt_value(self.password_encrypted),
        }

    # --- Read path ---

    def refund_history(self):
        """Refund requests filed against this subscription, newest first. Never changes the status."""
        return [request.to_dict() for request in sorted(self.refund_requests, key=lambda r: r.created_at or datetime.min, reverse=True)]

    def to_dict(self, currency_context=None, include_credentials=False, include_refunds=False, now=None):
        currency_context = currency_context or CurrencyContext()
        data = {
            'id': self.id,
            'user_auth_code_id': self.user_auth_code_id,
            'product': self.product.to_dict() if self.product else None,
            'subscription_type': self.subscription_type.value,
            'subscription_period': self.subscription_period.value,
            'status': self.status.value,
            'start_date': self.start_date.isoformat(),
            'expiry_date': self.expiry_date.isoformat(),
            'days_until_expiry': self.days_until_expiry(now),
            'auto_renew': self.auto_renew,
            'custom_price': str(self.custom_price) if self.custom_price is not None else None,
            'price': currency_context.present(self.effective_price),
            'currency': self.currency,
            'notes': self.notes,
            'version': self.version,
        }
        if include_credentials:
            data['credentials'] = self.get_credentials()
        if include_refunds:
            data['refund_requests'] = self.refund_history()
        return data

    def __repr__(self):
        """
        Provides a string representation of the Subscription object, useful for debugging.
        """
        return f'<Subscription {self.id} - AuthCode {self.user_auth_code_id} - Product {self.product_id} - Status {self.status.value}>'
