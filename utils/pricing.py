from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from errors import ValidationError
from enums import SubscriptionTierEnum, DurationEnum

# Base price per sharing tier, in the base currency.
BASE_PRICES = {
    SubscriptionTierEnum.SHARED: Decimal('5'),
    SubscriptionTierEnum.SEMI_PRIVATE: Decimal('10'),
    SubscriptionTierEnum.PRIVATE: Decimal('15'),
}

# Price multiplier per duration code.
DURATION_MULTIPLIERS = {
    DurationEnum.ONE_MONTH: Decimal('1'),
    DurationEnum.THREE_MONTHS: Decimal('2.5'),
    DurationEnum.SIX_MONTHS: Decimal('4.5'),
    DurationEnum.ONE_YEAR: Decimal('8'),
    DurationEnum.TWO_YEARS: Decimal('14'),
    DurationEnum.LIFETIME: Decimal('25'),
}

CENTS = Decimal('0.01')


def quantize_amount(amount):
    """Rounds a Decimal amount to two decimal places (half up)."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_price(tier, duration):
    """
    Computes the table-driven price of a (tier, duration) pair in the base currency.

    Args:
        tier (SubscriptionTierEnum or str): Sharing tier, e.g. "shared".
        duration (DurationEnum or str): Duration code, e.g. "1_year".

    Returns:
        Decimal: base(tier) x multiplier(duration), rounded to 2 decimal places.

    Raises:
        ValidationError: If either code is unknown. Unknown codes are never
                         replaced by a default table entry.
    """
    tier = SubscriptionTierEnum.from_code(tier)
    duration = DurationEnum.from_code(duration)
    return quantize_amount(BASE_PRICES[tier] * DURATION_MULTIPLIERS[duration])


def parse_amount(value, label='Amount'):
    """
    Validates an optional monetary amount coming from a request or a cart line.

    Args:
        value: None, an empty string, a number, or a numeric string.
        label (str): Field name used in error messages.

    Returns:
        Decimal or None: The amount rounded to 2 decimal places, or None when no amount is given.

    Raises:
        ValidationError: If the value is not a finite, non-negative number.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool): # bool is an int subclass; True is not a price.
        raise ValidationError(f"{label} must be a number.")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{label} must be a number.")
    if not amount.is_finite():
        raise ValidationError(f"{label} must be a number.")
    if amount < 0:
        raise ValidationError(f"{label} cannot be negative.")
    return quantize_amount(amount)


def parse_custom_price(value):
    """Validates a custom price override; see parse_amount."""
    return parse_amount(value, 'Custom price')


def effective_price(tier, duration, custom_price=None):
    """
    Returns the price actually charged: the custom override when it is not None
    (zero included), otherwise the calculated table price.
    """
    override = parse_custom_price(custom_price)
    if override is not None:
        return override
    return calculate_price(tier, duration)


def plan_base_amount(pricing_plans, tier, yearly=False):
    """
    Looks up the catalog display amount for a tier among a product's pricing plans.

    Args:
        pricing_plans (iterable of PricingPlan): Plans of one product.
        tier (SubscriptionTierEnum or str): The tier to look up.
        yearly (bool): Return the yearly figure instead of the monthly one.

    Returns:
        Decimal or None: The amount of the enabled plan for the tier, or None
                         if the tier has no enabled plan or no figure set.
    """
    tier = SubscriptionTierEnum.from_code(tier)
    for plan in pricing_plans:
        if plan.plan_type == tier and plan.is_enabled:
            amount = plan.yearly_price if yearly else plan.monthly_price
            return quantize_amount(Decimal(amount)) if amount is not None else None
    return None
