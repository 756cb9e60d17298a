from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField, IntegerField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Email, Length, NumberRange, Optional, ValidationError # Import standard validators.

import errors
from enums import (SubscriptionTierEnum, DurationEnum, RefundReasonEnum, RefundStatusEnum,
                   RefundMethodEnum)
from models.auth_code import AuthCode # Import AuthCode model for email uniqueness validation.
from models.refund_request import DESCRIPTION_MAX_LENGTH
from utils.cart import MAX_LINE_QUANTITY
from utils.currency import normalize_currency_code
from utils.pricing import parse_amount


def _code_validator(enum_cls):
    """Builds a field validator that accepts only the codes of `enum_cls`."""
    def validator(form, field):
        try:
            enum_cls.from_code(field.data)
        except errors.ValidationError as e:
            raise ValidationError(e.message)
    return validator


def _amount_validator(label):
    def validator(form, field):
        try:
            parse_amount(field.data, label)
        except errors.ValidationError as e:
            raise ValidationError(e.message)
    return validator


def _currency_validator(form, field):
    try:
        normalize_currency_code(field.data)
    except errors.ValidationError as e:
        raise ValidationError(e.message)


class ApiForm(FlaskForm):
    """
    Base for forms fed from JSON bodies (see utils.helpers.formdata_from_json).
    The API is used by same-origin scripts with session cookies, not HTML forms, so no CSRF token is expected.
    """
    class Meta:
        csrf = False


class AdminLoginForm(ApiForm):
    """
    Form for administrator login.
    """
    email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    password = PasswordField('Password', validators=[DataRequired(message="Password is required.")])
    remember_me = BooleanField('Remember Me')


class AuthCodeForm(ApiForm):
    """
    Form for creating or editing a customer's authentication code.
    The code itself is generated by the server; only the owner's details are submitted.
    """
    user_name = StringField('Name', validators=[DataRequired(message="Name is required."), Length(max=100, message="Name cannot exceed 100 characters.")])
    user_email = StringField('Email', validators=[DataRequired(message="Email is required."), Email(message="Invalid email address.")])
    is_active = BooleanField('Active', default=True)

    def __init__(self, *args, original_email=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.original_email = original_email

    def validate_user_email(self, user_email):
        """
        Custom validator for the email field.
        Checks if another auth code already uses the email address.
        The unique constraint in the store still guards against races (see routes/admin.py).

        Raises:
            ValidationError: If the email is already taken.
        """
        email = user_email.data.strip().lower()
        if self.original_email and email == self.original_email.lower():
            return
        if AuthCode.query.filter_by(user_email=email).first():
            raise ValidationError('A user with this email already exists.')


class SubscriptionForm(ApiForm):
    """
    Form for an administrator creating a subscription.
    """
    user_auth_code_id = IntegerField('Auth code', validators=[DataRequired(message="Auth code is required.")])
    product_id = IntegerField('Product', validators=[DataRequired(message="Product is required.")])
    subscription_type = StringField('Tier', default=SubscriptionTierEnum.SHARED.value,
                                    validators=[DataRequired(message="Tier is required."), _code_validator(SubscriptionTierEnum)])
    subscription_period = StringField('Duration', validators=[DataRequired(message="Duration is required."), _code_validator(DurationEnum)])
    start_date = StringField('Start date', validators=[Optional()])
    auto_renew = BooleanField('Auto renew')
    custom_price = StringField('Custom price', validators=[Optional(), _amount_validator('Custom price')])
    currency = StringField('Currency', validators=[Optional(), _currency_validator])
    username = StringField('Account username', validators=[Optional(), Length(max=255)])
    password = StringField('Account password', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=2000)])


class SubscriptionUpdateForm(ApiForm):
    """
    Form for an administrator editing a subscription. Every field is optional;
    the route only applies the keys present in the request.
    """
    subscription_type = StringField('Tier', validators=[Optional(), _code_validator(SubscriptionTierEnum)])
    subscription_period = StringField('Duration', validators=[Optional(), _code_validator(DurationEnum)])
    auto_renew = BooleanField('Auto renew')
    custom_price = StringField('Custom price', validators=[Optional(), _amount_validator('Custom price')])
    currency = StringField('Currency', validators=[Optional(), _currency_validator])
    username = StringField('Account username', validators=[Optional(), Length(max=255)])
    password = StringField('Account password', validators=[Optional(), Length(max=255)])
    notes = TextAreaField('Notes', validators=[Optional(), Length(max=2000)])
    version = IntegerField('Version', validators=[Optional()])


class RefundRequestForm(ApiForm):
    """
    Form for a customer filing a refund request against one of their subscriptions.
    """
    subscription_id = IntegerField('Subscription', validators=[DataRequired(message="Subscription is required.")])
    reason = StringField('Reason', validators=[DataRequired(message="Please select a reason for the refund request."), _code_validator(RefundReasonEnum)])
    description = TextAreaField('Description', validators=[
        DataRequired(message="Please describe why you are requesting a refund."),
        Length(max=DESCRIPTION_MAX_LENGTH, message=f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters."),
    ])


class RefundTransitionForm(ApiForm):
    """
    Form for an administrator moving a refund request to a new status.
    """
    status = StringField('Status', validators=[DataRequired(message="Status is required."), _code_validator(RefundStatusEnum)])
    admin_notes = TextAreaField('Admin notes', validators=[Optional(), Length(max=2000)])
    refund_amount = StringField('Refund amount', validators=[Optional(), _amount_validator('Refund amount')])
    refund_method = StringField('Refund method', validators=[Optional(), _code_validator(RefundMethodEnum)])
    version = IntegerField('Version', validators=[Optional()])


class CartItemForm(ApiForm):
    """
    Form for adding a product to the cart.
    """
    product_id = IntegerField('Product', validators=[DataRequired(message="Product is required.")])
    subscription_type = StringField('Tier', validators=[DataRequired(message="Tier is required."), _code_validator(SubscriptionTierEnum)])
    subscription_period = StringField('Duration', validators=[DataRequired(message="Duration is required."), _code_validator(DurationEnum)])


class CartQuantityForm(ApiForm):
    # InputRequired rather than DataRequired: zero is a valid quantity (it removes the line).
    quantity = IntegerField('Quantity', validators=[
        InputRequired(message="Quantity is required."),
        NumberRange(min=0, message="Quantity cannot be negative."),
        NumberRange(max=MAX_LINE_QUANTITY, message=f"Quantity cannot exceed {MAX_LINE_QUANTITY}."),
    ])


class ProductForm(ApiForm):
    """
    Form for an administrator adding a product to the catalog.
    """
    name = StringField('Name', validators=[DataRequired(message="Name is required."), Length(max=200)])
    slug = StringField('Slug', validators=[Optional(), Length(max=200)])
    category = StringField('Category', validators=[Optional(), Length(max=100)])
    price = StringField('Price', validators=[Optional(), _amount_validator('Price')])
