import secrets
import string
from datetime import datetime
from extensions import db

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


def generate_code():
    """Returns a random 8-character code drawn from A-Z and 0-9."""
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


class AuthCode(db.Model):
    """
    A permanent identity token representing one customer.

    Created by an administrator and handed to the customer, who signs in with it
    to see their subscriptions. It never expires; it can be deactivated. Deleting
    it deletes its subscriptions.
    """
    __tablename__ = 'user_auth_codes'

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(CODE_LENGTH), unique=True, nullable=False, index=True)
    user_name = db.Column(db.String(100), nullable=False)
    user_email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # 'subscriptions' gives all subscriptions owned by this code; they go when the code goes.
    subscriptions = db.relationship('Subscription', backref='auth_code', lazy='select',
                                    cascade='all, delete-orphan',
                                    order_by='Subscription.created_at.desc()')

    @classmethod
    def unused_code(cls, max_attempts=10):
        """
        Generates a code that no stored AuthCode uses yet.

        Raises:
            RuntimeError: If no free code is found within max_attempts draws.
        """
        for _ in range(max_attempts):
            candidate = generate_code()
            if cls.query.filter_by(code=candidate).first() is None:
                return candidate
        raise RuntimeError("Could not generate a unique authentication code.")

    def to_dict(self):
        return {
            'id': self.id,
            'code': self.code,
            'user_name': self.user_name,
            'user_email': self.user_email,
            'is_active': self.is_active,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<AuthCode {self.code} - {self.user_email}>'
