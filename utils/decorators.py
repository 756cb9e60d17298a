from functools import wraps
from flask import session, g, current_app
from flask_login import current_user

from errors import PermissionDeniedError
from extensions import db
from models import AuthCode

AUTH_CODE_SESSION_KEY = 'auth_code_id'

def auth_code_required(f):
    """
    Decorator to ensure a customer is signed in with an active auth code.
    The AuthCode is loaded into `g.auth_code` for the view.
    A code that was deactivated or deleted since sign-in ends the customer session.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_code_id = session.get(AUTH_CODE_SESSION_KEY)
        if auth_code_id is None:
            raise PermissionDeniedError("Please sign in with your authentication code.")

        auth_code = db.session.get(AuthCode, auth_code_id)
        if auth_code is None or not auth_code.is_active:
            session.pop(AUTH_CODE_SESSION_KEY, None)
            current_app.logger.warning(f"Customer session for auth code id {auth_code_id} ended: code missing or inactive.")
            raise PermissionDeniedError("Your authentication code is no longer valid. Please contact support.")

        g.auth_code = auth_code
        return f(*args, **kwargs)
    return decorated_function

def admin_required(f):
    """
    Decorator to ensure the current Flask-Login user is an administrator.
    Answers with the JSON 403 of PermissionDeniedError instead of a login redirect.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not current_user.is_authenticated or not getattr(current_user, 'is_admin', False):
            raise PermissionDeniedError("Administrator login required.")
        return f(*args, **kwargs)
    return decorated_function
