import enum

from errors import ValidationError


class CodeEnum(enum.Enum):
    """
    Base for the closed sets of string codes used across the core.
    Subclasses declare their members; `from_code` is the only way raw
    strings coming from requests or the store become enum members.
    """

    @classmethod
    def from_code(cls, code):
        """
        Maps a raw code (or an existing member) to a member of this enumeration.

        Args:
            code (str or CodeEnum): The code to parse, e.g. "semi_private".
        Returns:
            CodeEnum: The matching member.
        Raises:
            ValidationError: If the code is missing or not part of the enumeration.
                             Unknown codes never fall back to a default member.
        """
        if isinstance(code, cls):
            return code
        if isinstance(code, str):
            for member in cls:
                if member.value == code.strip():
                    return member
        allowed = ', '.join(member.value for member in cls)
        raise ValidationError(f"Invalid {cls.label()} '{code}'. Expected one of: {allowed}.")

    @classmethod
    def label(cls):
        return cls.__name__.replace('Enum', '').lower()

    @classmethod
    def codes(cls):
        return [member.value for member in cls]


class SubscriptionTierEnum(CodeEnum):
    """Sharing model of a subscription; drives the base price."""
    SHARED = 'shared'
    SEMI_PRIVATE = 'semi_private'
    PRIVATE = 'private'

    @classmethod
    def label(cls):
        return 'subscription tier'


class DurationEnum(CodeEnum):
    """Billing period token; drives the price multiplier and the expiry date."""
    ONE_MONTH = '1_month'
    THREE_MONTHS = '3_months'
    SIX_MONTHS = '6_months'
    ONE_YEAR = '1_year'
    TWO_YEARS = '2_years'
    LIFETIME = 'lifetime'

    @classmethod
    def label(cls):
        return 'duration'


class SubscriptionStatusEnum(CodeEnum):
    """
    Status of a subscription. ACTIVE, EXPIRING_SOON and EXPIRED are derived
    from the expiry date; CANCELLED is only ever set by an administrator.
    """
    ACTIVE = 'active'
    EXPIRING_SOON = 'expiring_soon'
    EXPIRED = 'expired'
    CANCELLED = 'cancelled'

    @classmethod
    def label(cls):
        return 'subscription status'


class RefundReasonEnum(CodeEnum):
    NOT_WORKING = 'not-working'
    TECHNICAL_ISSUES = 'technical-issues'
    NOT_SUITABLE = 'not-suitable'
    DUPLICATE_PURCHASE = 'duplicate-purchase'
    BILLING_ERROR = 'billing-error'
    CHANGE_OF_MIND = 'change-of-mind'
    OTHER = 'other'

    @classmethod
    def label(cls):
        return 'refund reason'


class RefundStatusEnum(CodeEnum):
    PENDING = 'pending'
    UNDER_REVIEW = 'under_review'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    COMPLETED = 'completed'

    @classmethod
    def label(cls):
        return 'refund status'


class RefundMethodEnum(CodeEnum):
    ORIGINAL_PAYMENT = 'original_payment'
    BANK_TRANSFER = 'bank_transfer'
    STORE_CREDIT = 'store_credit'

    @classmethod
    def label(cls):
        return 'refund method'
