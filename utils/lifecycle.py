import math
from datetime import datetime, timedelta

from enums import DurationEnum, SubscriptionStatusEnum

# Fixed number of days per finite duration code.
DURATION_DAYS = {
    DurationEnum.ONE_MONTH: 30,
    DurationEnum.THREE_MONTHS: 90,
    DurationEnum.SIX_MONTHS: 180,
    DurationEnum.ONE_YEAR: 365,
    DurationEnum.TWO_YEARS: 730,
}

# Lifetime subscriptions expire at a sentinel date this many calendar years after start.
LIFETIME_YEARS = 100

# A subscription with this much time left (or less) is reported as expiring soon.
EXPIRING_SOON_WINDOW = timedelta(days=7)


def _add_years(moment, years):
    try:
        return moment.replace(year=moment.year + years)
    except ValueError: # Feb 29 on a non-leap target year.
        return moment.replace(year=moment.year + years, day=28)


def compute_expiry_date(start_date, duration):
    """
    Computes the expiry date implied by a start date and a duration code.

    Args:
        start_date (datetime): When the subscription starts (naive UTC).
        duration (DurationEnum or str): The duration code.

    Returns:
        datetime: start_date + the fixed day count, or start_date + 100 years for lifetime.
    """
    duration = DurationEnum.from_code(duration)
    if duration == DurationEnum.LIFETIME:
        return _add_years(start_date, LIFETIME_YEARS)
    return start_date + timedelta(days=DURATION_DAYS[duration])


def derive_status(expiry_date, now=None, current_status=None):
    """
    Derives a subscription status from its expiry date.

    Args:
        expiry_date (datetime): The subscription's expiry date.
        now (datetime, optional): Reference time; defaults to datetime.utcnow().
        current_status (SubscriptionStatusEnum, optional): The stored status. A cancelled
            subscription stays cancelled whatever its dates say.

    Returns:
        SubscriptionStatusEnum: EXPIRED when now >= expiry, EXPIRING_SOON when at most
        seven days remain, ACTIVE otherwise (or CANCELLED, see above).
    """
    if current_status == SubscriptionStatusEnum.CANCELLED:
        return SubscriptionStatusEnum.CANCELLED
    now = now or datetime.utcnow()
    if now >= expiry_date:
        return SubscriptionStatusEnum.EXPIRED
    if expiry_date - now <= EXPIRING_SOON_WINDOW:
        return SubscriptionStatusEnum.EXPIRING_SOON
    return SubscriptionStatusEnum.ACTIVE


def days_until_expiry(expiry_date, now=None):
    """Whole days left before expiry, rounded up; zero or negative once expired."""
    now = now or datetime.utcnow()
    return math.ceil((expiry_date - now).total_seconds() / 86400)
