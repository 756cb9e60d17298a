"""
Currency conversion and formatting for display.

All stored monetary values are denominated in the base currency (NGN).
Conversion is purely presentational: amounts are converted on the way out
from the static rate table below and never written back.
"""
import logging
from decimal import Decimal, InvalidOperation, localcontext

from errors import ValidationError
from utils.pricing import quantize_amount

logger = logging.getLogger(__name__)

BASE_CURRENCY = 'NGN'

# Multiplicative rate of each currency relative to the base currency.
EXCHANGE_RATES = {
    'NGN': Decimal('1'),
    'USD': Decimal('0.001'),
    'EUR': Decimal('0.0009'),
    'GBP': Decimal('0.0008'),
    'AED': Decimal('0.0037'),
    'SAR': Decimal('0.0037'),
    'CAD': Decimal('0.0013'),
    'AUD': Decimal('0.0015'),
}

CURRENCY_SYMBOLS = {
    'NGN': '₦',
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'AED': 'د.إ',
    'SAR': '﷼',
    'CAD': 'C$',
    'AUD': 'A$',
}

CURRENCY_NAMES = {
    'NGN': 'Nigerian Naira',
    'USD': 'US Dollar',
    'EUR': 'Euro',
    'GBP': 'British Pound',
    'AED': 'UAE Dirham',
    'SAR': 'Saudi Riyal',
    'CAD': 'Canadian Dollar',
    'AUD': 'Australian Dollar',
}

# Labels that older records use for amounts that are really in the base currency.
LEGACY_BASE_ALIASES = ('PKR',)


def available_currencies():
    return list(EXCHANGE_RATES.keys())


def normalize_currency_code(code):
    """
    Normalizes a currency code at the boundary.

    Args:
        code (str or None): The code to check. None or blank means the base currency.

    Returns:
        str: An upper-case code present in EXCHANGE_RATES.

    Raises:
        ValidationError: If the code is not supported.
    """
    if code is None or not str(code).strip():
        return BASE_CURRENCY
    normalized = str(code).strip().upper()
    if normalized in LEGACY_BASE_ALIASES:
        logger.warning(f"Legacy base currency label '{normalized}' normalized to {BASE_CURRENCY}.")
        return BASE_CURRENCY
    if normalized not in EXCHANGE_RATES:
        raise ValidationError(f"Unsupported currency '{code}'. Expected one of: {', '.join(available_currencies())}.")
    return normalized


def _to_decimal(amount):
    """Coerces an amount to a finite Decimal, or returns None for missing/NaN/garbage input."""
    if amount is None or isinstance(amount, bool):
        return None
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        return None
    return value if value.is_finite() else None


def convert(amount, target_currency=BASE_CURRENCY):
    """
    Converts a base-currency amount into the target currency.

    Returns the amount unchanged for the base currency. Missing or NaN amounts convert to zero.
    """
    target_currency = normalize_currency_code(target_currency)
    value = _to_decimal(amount)
    if value is None:
        return Decimal('0')
    if target_currency == BASE_CURRENCY:
        return value
    return value * EXCHANGE_RATES[target_currency]


def get_currency_symbol(currency=BASE_CURRENCY):
    currency = normalize_currency_code(currency)
    return CURRENCY_SYMBOLS.get(currency, currency)


def get_currency_name(currency=BASE_CURRENCY):
    currency = normalize_currency_code(currency)
    return CURRENCY_NAMES.get(currency, currency)


def _round(value):
    try:
        return quantize_amount(value)
    except InvalidOperation:
        # More integer digits than the context precision leaves room for two decimals.
        with localcontext() as context:
            context.prec = value.adjusted() + 3
            return quantize_amount(value)


def _format_number(value):
    return f"{_round(value):,.2f}"


def format_currency(amount, currency=BASE_CURRENCY, show_symbol=True, show_conversion=False):
    """
    Formats a base-currency amount for display in the given currency.

    Args:
        amount: The amount in the base currency. None, NaN or non-numeric input renders as zero.
        currency (str): Display currency code.
        show_symbol (bool): Prefix the currency symbol.
        show_conversion (bool): For non-base currencies, append the original base amount,
                                e.g. "$5.00 (₦5,000.00)".

    Returns:
        str: Two fixed decimals with thousands separators, e.g. "₦12,500.00".
    """
    currency = normalize_currency_code(currency)
    symbol = get_currency_symbol(currency) if show_symbol else ''
    value = _to_decimal(amount)
    if value is None:
        return f"{symbol}0.00"

    formatted = f"{symbol}{_format_number(convert(value, currency))}"
    if show_conversion and currency != BASE_CURRENCY:
        formatted += f" ({CURRENCY_SYMBOLS[BASE_CURRENCY]}{_format_number(value)})"
    return formatted


class CurrencyContext:
    """
    The display currency selected by one customer, passed explicitly to the
    code that presents prices instead of being read from ambient state.
    """

    def __init__(self, selected_currency=BASE_CURRENCY):
        self.selected_currency = normalize_currency_code(selected_currency)

    @property
    def is_base_currency(self):
        return self.selected_currency == BASE_CURRENCY

    def convert(self, amount):
        return convert(amount, self.selected_currency)

    def format(self, amount, show_symbol=True, show_conversion=False):
        return format_currency(amount, self.selected_currency, show_symbol=show_symbol, show_conversion=show_conversion)

    def present(self, amount):
        """Returns the base amount alongside its converted and formatted display forms."""
        base_amount = _to_decimal(amount)
        return {
            'base_amount': str(_round(base_amount)) if base_amount is not None else '0.00',
            'base_currency': BASE_CURRENCY,
            'currency': self.selected_currency,
            'amount': str(_round(self.convert(amount))),
            'formatted': self.format(amount),
        }

    def to_dict(self):
        return {
            'selected_currency': self.selected_currency,
            'symbol': get_currency_symbol(self.selected_currency),
            'name': get_currency_name(self.selected_currency),
            'is_base_currency': self.is_base_currency,
        }
