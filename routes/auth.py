from flask import Blueprint, jsonify, request, session, current_app
from flask_login import login_user, logout_user, login_required, current_user

from errors import ValidationError, PermissionDeniedError
from forms import AdminLoginForm
from models import AdminUser, AuthCode
from utils.decorators import AUTH_CODE_SESSION_KEY
from utils.helpers import formdata_from_json, first_form_error

# Blueprint for authentication-related routes:
# administrator login through Flask-Login and customer sign-in with an auth code.
auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


# Route for administrator login.
@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Authenticates an administrator with email and password.
    Returns the administrator's details on success.
    """
    if current_user.is_authenticated:
        return jsonify({'email': current_user.email, 'full_name': current_user.full_name})

    form = AdminLoginForm(formdata=formdata_from_json(request.get_json(silent=True)))
    if not form.validate():
        raise ValidationError(first_form_error(form))

    admin = AdminUser.query.filter_by(email=form.email.data.strip().lower()).first()
    # Verify if the administrator exists and the password matches.
    if admin is None or not admin.check_password(form.password.data):
        current_app.logger.warning(f"Failed admin login attempt for email: {form.email.data}.")
        raise PermissionDeniedError("Invalid email or password.")

    login_user(admin, remember=form.remember_me.data)
    current_app.logger.info(f"Admin {admin.email} logged in successfully.")
    return jsonify({'email': admin.email, 'full_name': admin.full_name})


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    """Logs the current administrator out."""
    current_app.logger.info(f"Admin {current_user.email} logged out.")
    logout_user()
    return jsonify({'message': 'You have been logged out.'})


# Route for customer sign-in with a permanent authentication code.
@auth_bp.route('/code-login', methods=['POST'])
def code_login():
    """
    Signs a customer in with their authentication code.
    Codes never expire, but inactive codes are refused.
    """
    data = request.get_json(silent=True) or {}
    code = (data.get('code') or '').strip().upper()
    if not code:
        raise ValidationError("Please enter your authentication code.")

    auth_code = AuthCode.query.filter_by(code=code, is_active=True).first()
    if auth_code is None:
        current_app.logger.warning(f"Failed customer sign-in with code '{code}'.")
        raise PermissionDeniedError("Invalid or inactive authentication code.")

    session.permanent = True
    session[AUTH_CODE_SESSION_KEY] = auth_code.id
    current_app.logger.info(f"Customer {auth_code.user_email} signed in with auth code {auth_code.id}.")
    return jsonify({'user_name': auth_code.user_name, 'user_email': auth_code.user_email})


@auth_bp.route('/code-logout', methods=['POST'])
def code_logout():
    """Signs the customer out. The cart and currency preference stay in the session."""
    session.pop(AUTH_CODE_SESSION_KEY, None)
    return jsonify({'message': 'You have been successfully signed out.'})
