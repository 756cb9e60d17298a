from datetime import datetime
from decimal import Decimal
from extensions import db
from errors import ValidationError, PermissionDeniedError, InvalidTransitionError, StaleWriteError
from enums import RefundReasonEnum, RefundStatusEnum, RefundMethodEnum
from utils.pricing import parse_amount

DESCRIPTION_MAX_LENGTH = 1000

# Allowed moves of the refund workflow. REJECTED and COMPLETED are terminal.
ALLOWED_TRANSITIONS = {
    RefundStatusEnum.PENDING: (RefundStatusEnum.UNDER_REVIEW, RefundStatusEnum.APPROVED, RefundStatusEnum.REJECTED),
    RefundStatusEnum.UNDER_REVIEW: (RefundStatusEnum.APPROVED, RefundStatusEnum.REJECTED),
    RefundStatusEnum.APPROVED: (RefundStatusEnum.COMPLETED,),
    RefundStatusEnum.REJECTED: (),
    RefundStatusEnum.COMPLETED: (),
}


def _is_admin(actor):
    return bool(actor is not None and getattr(actor, 'is_authenticated', False) and getattr(actor, 'is_admin', False))


class RefundRequest(db.Model):
    """
    A customer's refund claim against one of their subscriptions.

    Created by the subscription owner in PENDING, then moved only by an administrator:
    PENDING -> UNDER_REVIEW -> APPROVED | REJECTED, PENDING -> APPROVED | REJECTED,
    APPROVED -> COMPLETED. The subscription's own status is never changed by the workflow,
    and requests are never deleted.
    """
    __tablename__ = 'subscription_refund_requests'

    id = db.Column(db.Integer, primary_key=True)

    # --- Foreign Keys ---
    # The auth code is always the subscription's owner (checked in `create`).
    subscription_id = db.Column(db.Integer, db.ForeignKey('user_subscriptions.id'), nullable=False, index=True)
    user_auth_code_id = db.Column(db.Integer, db.ForeignKey('user_auth_codes.id'), nullable=False, index=True)

    # --- Claim ---
    reason = db.Column(db.Enum(RefundReasonEnum), nullable=False)
    description = db.Column(db.Text, nullable=False)

    # --- Workflow ---
    status = db.Column(db.Enum(RefundStatusEnum), nullable=False, default=RefundStatusEnum.PENDING, index=True)
    admin_notes = db.Column(db.Text, nullable=True)
    refund_amount = db.Column(db.Numeric(10, 2), nullable=True) # Base currency.
    refund_method = db.Column(db.Enum(RefundMethodEnum), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=True)

    # --- Timestamps and concurrency ---
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    # --- Relationships ---
    subscription = db.relationship('Subscription', backref=db.backref('refund_requests', lazy='select'))
    auth_code = db.relationship('AuthCode')

    @classmethod
    def create(cls, subscription, auth_code, reason, description):
        """
        Files a new refund request for a subscription owned by `auth_code`.

        No precondition is placed on the subscription's status; refundability is
        decided by the administrator during review.

        Args:
            subscription (Subscription): The subscription the refund is claimed for.
            auth_code (AuthCode): The signed-in customer filing the claim.
            reason (RefundReasonEnum or str): One of the enumerated reasons.
            description (str): Free text, 1 to 1000 characters after trimming.

        Returns:
            RefundRequest: The new request in PENDING (not yet added to the session).

        Raises:
            ValidationError: On a missing/unknown reason or a missing/too long description.
            PermissionDeniedError: If the subscription is not owned by `auth_code`.
        """
        if reason is None or (isinstance(reason, str) and not reason.strip()):
            raise ValidationError("Please select a reason for the refund request.")
        reason = RefundReasonEnum.from_code(reason)

        description = (description or '').strip()
        if not description:
            raise ValidationError("Please describe why you are requesting a refund.")
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise ValidationError(f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters.")

        if auth_code is None or subscription.user_auth_code_id != auth_code.id:
            raise PermissionDeniedError("This subscription does not belong to your account.")

        return cls(
            subscription=subscription,
            auth_code=auth_code,
            reason=reason,
            description=description,
            status=RefundStatusEnum.PENDING,
        )

    @property
    def is_terminal(self):
        return not ALLOWED_TRANSITIONS[self.status]

    def can_transition_to(self, new_status):
        return RefundStatusEnum.from_code(new_status) in ALLOWED_TRANSITIONS[self.status]

    def check_version(self, expected_version):
        """
        Raises:
            ValidationError: If `expected_version` is not a whole number.
            StaleWriteError: If `expected_version` is given and does not match.
        """
        if expected_version is None:
            return
        try:
            expected_version = int(expected_version)
        except (TypeError, ValueError):
            raise ValidationError("Version must be a whole number.")
        if expected_version != self.version:
            raise StaleWriteError(
                f"Refund request {self.id} was modified by someone else (version {self.version}, you sent {expected_version}). Reload and try again."
            )

    def transition(self, new_status, actor, admin_notes=None, refund_amount=None, refund_method=None,
                   expected_version=None, now=None):
        """
        Moves the request to `new_status` on behalf of an administrator.

        Approving without a refund amount defaults it to the subscription's effective price.
        Every transition stamps processed_at.

        Raises:
            PermissionDeniedError: If `actor` is not an authenticated administrator.
            InvalidTransitionError: If the move is not allowed from the current status.
            ValidationError: On a negative/non-numeric amount, an unknown refund method or a non-numeric version.
            StaleWriteError: If `expected_version` is given and does not match.
        """
        if not _is_admin(actor):
            raise PermissionDeniedError("Only an administrator can process refund requests.")
        new_status = RefundStatusEnum.from_code(new_status)
        self.check_version(expected_version)
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"Refund request {self.id} cannot move from '{self.status.value}' to '{new_status.value}'."
            )

        amount = parse_amount(refund_amount, 'Refund amount')
        method = RefundMethodEnum.from_code(refund_method) if refund_method else None

        if new_status == RefundStatusEnum.APPROVED:
            self.refund_amount = amount if amount is not None else Decimal(self.subscription.effective_price)
            if method is not None:
                self.refund_method = method
        elif new_status == RefundStatusEnum.COMPLETED:
            if amount is not None:
                self.refund_amount = amount
            if method is not None:
                self.refund_method = method
        elif new_status == RefundStatusEnum.REJECTED:
            self.refund_amount = None
            self.refund_method = None

        if admin_notes is not None:
            self.admin_notes = admin_notes.strip() or None
        self.status = new_status
        self.processed_at = now or datetime.utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'subscription_id': self.subscription_id,
            'user_auth_code_id': self.user_auth_code_id,
            'reason': self.reason.value,
            'description': self.description,
            'status': self.status.value,
            'admin_notes': self.admin_notes,
            'refund_amount': str(self.refund_amount) if self.refund_amount is not None else None,
            'refund_method': self.refund_method.value if self.refund_method else None,
            'processed_at': self.processed_at.isoformat() if self.processed_at else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'version': self.version,
        }

    def __repr__(self):
        return f'<RefundRequest {self.id} - Subscription {self.subscription_id} - Status {self.status.value}>'
