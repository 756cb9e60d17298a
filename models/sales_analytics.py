from datetime import datetime
from extensions import db
from enums import SubscriptionTierEnum, DurationEnum

class SalesAnalytics(db.Model):
    """
    Daily sales figures per product and plan, derived from subscriptions.

    Each record aggregates the subscriptions that started on `date` for one
    (product, tier, duration) combination. Rows are written only by the batch
    procedures in utils/maintenance.py and can always be rebuilt from the
    subscriptions and refund requests they summarize.
    """
    __tablename__ = 'sales_analytics'

    id = db.Column(db.Integer, primary_key=True)

    # --- Grouping key ---
    date = db.Column(db.Date, nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=True, index=True)
    subscription_type = db.Column(db.Enum(SubscriptionTierEnum), nullable=False)
    subscription_period = db.Column(db.Enum(DurationEnum), nullable=False)

    # --- Figures (money in the base currency) ---
    subscriptions_sold = db.Column(db.Integer, nullable=False, default=0)
    revenue = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    active_subscriptions = db.Column(db.Integer, nullable=False, default=0)
    expired_subscriptions = db.Column(db.Integer, nullable=False, default=0)
    refunds_count = db.Column(db.Integer, nullable=False, default=0)
    refunds_issued = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # --- Timestamps ---
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # One row per day and plan of a product.
    __table_args__ = (
        db.UniqueConstraint('date', 'product_id', 'subscription_type', 'subscription_period',
                            name='uq_sales_analytics_daily_plan'),
    )

    def to_dict(self):
        return {
            'date': self.date.isoformat(),
            'product_id': self.product_id,
            'subscription_type': self.subscription_type.value,
            'subscription_period': self.subscription_period.value,
            'subscriptions_sold': self.subscriptions_sold,
            'revenue': str(self.revenue),
            'active_subscriptions': self.active_subscriptions,
            'expired_subscriptions': self.expired_subscriptions,
            'refunds_count': self.refunds_count,
            'refunds_issued': str(self.refunds_issued),
        }

    def __repr__(self):
        return f'<SalesAnalytics {self.date} - Product {self.product_id} - {self.subscription_type.value}/{self.subscription_period.value}>'
