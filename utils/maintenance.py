"""
Batch procedures run by administrators (HTTP) or by a scheduler (Flask CLI).

Each procedure commits its own transaction and reports what it did; on a store
failure the session is rolled back and the error propagates to the caller.
"""
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from extensions import db
from enums import SubscriptionStatusEnum, RefundStatusEnum
from models import Subscription, RefundRequest, SalesAnalytics
from utils.lifecycle import EXPIRING_SOON_WINDOW


def _status_update(target_status, *criteria):
    # Only `status` changes; updated_at is pinned to itself so the sweep leaves every other field untouched.
    return (
        update(Subscription)
        .where(Subscription.status != SubscriptionStatusEnum.CANCELLED,
               Subscription.status != target_status,
               *criteria)
        .values(status=target_status, updated_at=Subscription.updated_at)
        .execution_options(synchronize_session='fetch')
    )


def recompute_subscription_statuses(now=None):
    """
    Re-derives the materialized status of every non-cancelled subscription from its expiry date.

    Runs three set-based UPDATEs, one per derived state, so concurrent sweeps (or a sweep racing
    an edit) resolve as last-write-wins on the status column. Running it twice with the same
    `now` changes nothing the second time.

    Args:
        now (datetime, optional): Reference time (naive UTC). Defaults to datetime.utcnow().

    Returns:
        dict: {'active_count', 'expiring_soon_count', 'expired_count', 'updated_count'} where each
              *_count is the number of subscriptions moved into that state by this sweep.
    """
    now = now or datetime.utcnow()
    soon = now + EXPIRING_SOON_WINDOW
    try:
        expired = db.session.execute(_status_update(
            SubscriptionStatusEnum.EXPIRED,
            Subscription.expiry_date <= now)).rowcount
        expiring_soon = db.session.execute(_status_update(
            SubscriptionStatusEnum.EXPIRING_SOON,
            Subscription.expiry_date > now,
            Subscription.expiry_date <= soon)).rowcount
        active = db.session.execute(_status_update(
            SubscriptionStatusEnum.ACTIVE,
            Subscription.expiry_date > soon)).rowcount
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Subscription status sweep failed: {e}", exc_info=True)
        raise

    result = {
        'active_count': active,
        'expiring_soon_count': expiring_soon,
        'expired_count': expired,
        'updated_count': active + expiring_soon + expired,
    }
    current_app.logger.info(f"Subscription status sweep at {now.isoformat()}: {result}")
    return result


def _group_key(subscription):
    return (subscription.start_date.date(), subscription.product_id,
            subscription.subscription_type, subscription.subscription_period)


def _aggregate(subscriptions):
    """Computes the analytics figures of one group of subscriptions."""
    figures = {
        'subscriptions_sold': len(subscriptions),
        'revenue': Decimal('0'),
        'active_subscriptions': 0,
        'expired_subscriptions': 0,
        'refunds_count': 0,
        'refunds_issued': Decimal('0'),
    }
    for subscription in subscriptions:
        figures['revenue'] += subscription.effective_price
        if subscription.status in (SubscriptionStatusEnum.ACTIVE, SubscriptionStatusEnum.EXPIRING_SOON):
            figures['active_subscriptions'] += 1
        elif subscription.status == SubscriptionStatusEnum.EXPIRED:
            figures['expired_subscriptions'] += 1
        for refund in subscription.refund_requests:
            # Only completed refunds have actually left the business.
            if refund.status == RefundStatusEnum.COMPLETED:
                figures['refunds_count'] += 1
                figures['refunds_issued'] += Decimal(refund.refund_amount or 0)
    return figures


def _grouped_subscriptions():
    groups = defaultdict(list)
    for subscription in Subscription.query.order_by(Subscription.id).all():
        groups[_group_key(subscription)].append(subscription)
    return groups


def _existing_rows():
    return {
        (row.date, row.product_id, row.subscription_type, row.subscription_period): row
        for row in SalesAnalytics.query.all()
    }


def _new_row(key, figures):
    day, product_id, tier, duration = key
    return SalesAnalytics(date=day, product_id=product_id, subscription_type=tier,
                          subscription_period=duration, **figures)


def backfill_analytics_from_subscriptions():
    """
    Creates the analytics rows missing for existing subscriptions. Existing rows are left as they are.

    Returns:
        dict: {'processed_records': subscriptions examined, 'created_analytics_records': rows created}
    """
    groups = _grouped_subscriptions()
    existing = _existing_rows()
    processed = sum(len(subscriptions) for subscriptions in groups.values())
    created = 0
    try:
        for key, subscriptions in groups.items():
            if key in existing:
                continue
            db.session.add(_new_row(key, _aggregate(subscriptions)))
            created += 1
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Analytics backfill failed: {e}", exc_info=True)
        raise

    current_app.logger.info(f"Analytics backfill processed {processed} subscriptions and created {created} records.")
    return {'processed_records': processed, 'created_analytics_records': created}


def repair_analytics_consistency():
    """
    Rebuilds every analytics row from the subscriptions and completed refunds it summarizes:
    stale figures are rewritten, missing rows created and rows with no subscriptions left removed.

    Returns:
        str: A summary message.
    """
    groups = _grouped_subscriptions()
    existing = _existing_rows()
    updated = created = removed = 0
    try:
        for key, subscriptions in groups.items():
            figures = _aggregate(subscriptions)
            row = existing.pop(key, None)
            if row is None:
                db.session.add(_new_row(key, figures))
                created += 1
                continue
            changed = False
            for field, value in figures.items():
                if getattr(row, field) != value:
                    setattr(row, field, value)
                    changed = True
            if changed:
                updated += 1
        for orphan in existing.values():
            db.session.delete(orphan)
            removed += 1
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Analytics repair failed: {e}", exc_info=True)
        raise

    message = f"Analytics repaired: {updated} updated, {created} created, {removed} removed."
    current_app.logger.info(message)
    return message
