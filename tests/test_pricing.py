import pytest
from decimal import Decimal
from enums import SubscriptionTierEnum, DurationEnum
from errors import ValidationError
from utils.pricing import calculate_price, effective_price, parse_amount, parse_custom_price, plan_base_amount

@pytest.mark.parametrize("tier, duration, expected", [
    ('shared', '1_month', Decimal('5.00')),
    ('shared', '3_months', Decimal('12.50')),
    ('shared', 'lifetime', Decimal('125.00')),
    ('semi_private', '6_months', Decimal('45.00')),
    ('semi_private', '2_years', Decimal('140.00')),
    ('private', '1_year', Decimal('120.00')),
    ('private', 'lifetime', Decimal('375.00')),
])
def test_calculate_price_table(tier, duration, expected):
    assert calculate_price(tier, duration) == expected

def test_calculate_price_accepts_enum_members():
    assert calculate_price(SubscriptionTierEnum.PRIVATE, DurationEnum.THREE_MONTHS) == Decimal('37.50')

def test_calculate_price_has_two_decimal_places():
    assert calculate_price('shared', '3_months').as_tuple().exponent == -2

@pytest.mark.parametrize("tier, duration", [
    ('family', '1_month'),
    ('shared', '5_years'),
    ('', '1_month'),
    (None, '1_month'),
    ('SHARED', '1_month'), # codes are case sensitive
])
def test_calculate_price_rejects_unknown_codes(tier, duration):
    with pytest.raises(ValidationError):
        calculate_price(tier, duration)

def test_unknown_code_error_lists_allowed_values():
    with pytest.raises(ValidationError) as excinfo:
        calculate_price('family', '1_month')
    assert "Invalid subscription tier 'family'" in excinfo.value.message
    assert 'semi_private' in excinfo.value.message

def test_effective_price_uses_custom_price_when_set():
    assert effective_price('private', 'lifetime', '99.999') == Decimal('100.00')

def test_effective_price_zero_custom_price_is_an_override():
    assert effective_price('private', '1_year', 0) == Decimal('0.00')

def test_effective_price_without_override_is_table_price():
    assert effective_price('semi_private', '1_month', None) == Decimal('10.00')
    assert effective_price('semi_private', '1_month', '') == Decimal('10.00')

@pytest.mark.parametrize("value, message", [
    ('-1', 'Custom price cannot be negative.'),
    ('abc', 'Custom price must be a number.'),
    ('NaN', 'Custom price must be a number.'),
    ('Infinity', 'Custom price must be a number.'),
    (True, 'Custom price must be a number.'),
])
def test_parse_custom_price_rejects_invalid_values(value, message):
    with pytest.raises(ValidationError) as excinfo:
        parse_custom_price(value)
    assert excinfo.value.message == message

def test_parse_amount_uses_label_in_messages():
    with pytest.raises(ValidationError) as excinfo:
        parse_amount('-5', 'Refund amount')
    assert excinfo.value.message == 'Refund amount cannot be negative.'

def test_parse_amount_rounds_half_up():
    assert parse_amount('2.345') == Decimal('2.35')
    assert parse_amount(7) == Decimal('7.00')

class _Plan:
    def __init__(self, plan_type, monthly_price, yearly_price=None, is_enabled=True):
        self.plan_type = plan_type
        self.monthly_price = monthly_price
        self.yearly_price = yearly_price
        self.is_enabled = is_enabled

def test_plan_base_amount_picks_enabled_plan_of_tier():
    plans = [
        _Plan(SubscriptionTierEnum.SHARED, Decimal('1500'), Decimal('15000')),
        _Plan(SubscriptionTierEnum.PRIVATE, Decimal('4000'), is_enabled=False),
    ]
    assert plan_base_amount(plans, 'shared') == Decimal('1500.00')
    assert plan_base_amount(plans, 'shared', yearly=True) == Decimal('15000.00')
    assert plan_base_amount(plans, 'private') is None
    assert plan_base_amount(plans, 'semi_private') is None

def test_plan_base_amount_missing_yearly_figure():
    plans = [_Plan(SubscriptionTierEnum.SHARED, Decimal('1500'))]
    assert plan_base_amount(plans, 'shared', yearly=True) is None
