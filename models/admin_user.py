from datetime import datetime
from extensions import db
import bcrypt
from flask_login import UserMixin # For Flask-Login integration (e.g., current_user).

class AdminUser(db.Model, UserMixin):
    """
    Represents an administrator of the store.

    Administrators are the only actors allowed to manage auth codes and subscriptions
    and to move refund requests through their workflow. UserMixin provides the default
    implementations Flask-Login requires (is_authenticated, get_id, ...).
    """
    __tablename__ = 'admin_users' # Specifies the database table name.

    # --- Basic Information ---
    id = db.Column(db.Integer, primary_key=True) # Unique identifier for the administrator.
    email = db.Column(db.String(120), unique=True, nullable=False, index=True) # Login email. Must be unique.
    password_hash = db.Column(db.String(128), nullable=False) # bcrypt hash of the password.
    full_name = db.Column(db.String(100), nullable=True)

    # --- Timestamps ---
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Checked by the refund workflow to tell administrators apart from other actors.
    is_admin = True

    def set_password(self, password):
        """
        Hashes the provided password and stores it in `password_hash`.

        Args:
            password (str): The plain-text password to hash.
        """
        # Password is encoded to UTF-8 before hashing. Salt is generated automatically by bcrypt.
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        """
        Verifies if the provided password matches the stored hashed password.

        Returns:
            bool: True if the password matches, False otherwise.
        """
        if self.password_hash:
            return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))
        return False

    def __repr__(self):
        return f'<AdminUser {self.email}>'
