from datetime import datetime
from extensions import db # Import the SQLAlchemy instance from extensions.
from enums import SubscriptionTierEnum

class Product(db.Model):
    """
    A third-party software account offering sold by the store.

    Owned by catalog management; the subscription core only reads it. The list
    price is informational and never enters lifecycle or pricing math.
    """
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(200), unique=True, nullable=True, index=True)
    category = db.Column(db.String(100), nullable=True, index=True)
    price = db.Column(db.Numeric(10, 2), nullable=True) # Informational list price, base currency.
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # One plan per sharing tier; see PricingPlan.
    pricing_plans = db.relationship('PricingPlan', backref='product', lazy='select',
                                    order_by='PricingPlan.id', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'slug': self.slug,
            'category': self.category,
            'price': str(self.price) if self.price is not None else None,
        }

    def __repr__(self):
        return f'<Product {self.name}>'


class PricingPlan(db.Model):
    """
    Represents the catalog pricing of one sharing tier of a product.

    Only used to look up a display amount in catalog contexts; subscription
    prices come from the table-driven calculator in utils/pricing.py.
    """
    __tablename__ = 'pricing_plans' # Specifies the database table name.

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    plan_type = db.Column(db.Enum(SubscriptionTierEnum), nullable=False) # Sharing tier this plan prices.
    is_enabled = db.Column(db.Boolean, nullable=False, default=True)
    # Numeric type for precise decimal values (e.g., 10.00). Nullable when a period is not offered.
    monthly_price = db.Column(db.Numeric(10, 2), nullable=True)
    yearly_price = db.Column(db.Numeric(10, 2), nullable=True)

    __table_args__ = (
        db.UniqueConstraint('product_id', 'plan_type', name='uq_pricing_plan_product_tier'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'plan_type': self.plan_type.value,
            'is_enabled': self.is_enabled,
            'monthly_price': str(self.monthly_price) if self.monthly_price is not None else None,
            'yearly_price': str(self.yearly_price) if self.yearly_price is not None else None,
        }

    def __repr__(self):
        """
        Provides a string representation of the PricingPlan object, useful for debugging.
        """
        return f'<PricingPlan product={self.product_id} {self.plan_type.value} - {self.monthly_price}>'
