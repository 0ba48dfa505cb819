from __future__ import annotations

from datetime import date
from typing import Any

from sitekeeper.billing.grace_period import is_expired as grace_period_expired
from sitekeeper.core.config import settings
from sitekeeper.core.time import today as utc_today
from sitekeeper.models.enums import SubscriptionStatusEnum


FEATURE_GOALS = "goals"
FEATURE_PROPS = "props"
FEATURE_FUNNELS = "funnels"
FEATURE_REVENUE_GOALS = "revenue_goals"

ALL_FEATURES = frozenset(
    {
        FEATURE_GOALS,
        FEATURE_PROPS,
        FEATURE_FUNNELS,
        FEATURE_REVENUE_GOALS,
    }
)

# Features every account has regardless of plan.
FREE_FEATURES = frozenset({FEATURE_GOALS})

PLAN_FEATURES = {
    "growth": frozenset({FEATURE_GOALS}),
    "business": ALL_FEATURES,
    "enterprise": ALL_FEATURES,
}

NO_UPGRADE_NEEDED = "no_upgrade_needed"
NO_ACTIVE_SUBSCRIPTION = "no_active_subscription"
GRACE_PERIOD_ENDED = "grace_period_ended"


def subscription_is_active(subscription, today: date | None = None) -> bool:
    if subscription is None:
        return False
    today = today or utc_today()
    status = SubscriptionStatusEnum(subscription.status)
    if status in {SubscriptionStatusEnum.ACTIVE, SubscriptionStatusEnum.PAST_DUE}:
        return True
    # Cancelled subscriptions stay usable until the paid period runs out.
    if status == SubscriptionStatusEnum.DELETED and subscription.next_bill_date:
        return subscription.next_bill_date > today
    return False


def trial_days_left(user, today: date | None = None) -> int | None:
    if user.trial_expiry_date is None:
        return None
    return (user.trial_expiry_date - (today or utc_today())).days


def on_trial(user, today: date | None = None) -> bool:
    days_left = trial_days_left(user, today)
    if days_left is None:
        return False
    return not subscription_is_active(user.subscription, today) and days_left >= 0


def check_needs_to_upgrade(user, today: date | None = None) -> Any:
    """
    Answer whether the user's sites should be locked.

    Returns ``"no_upgrade_needed"`` or a ``("needs_to_upgrade", reason)`` tuple
    where reason is ``"no_active_subscription"`` or ``"grace_period_ended"``.
    """
    today = today or utc_today()
    trial_is_over = user.trial_expiry_date is not None and user.trial_expiry_date < today
    if not trial_is_over:
        return NO_UPGRADE_NEEDED
    if not subscription_is_active(user.subscription, today):
        return ("needs_to_upgrade", NO_ACTIVE_SUBSCRIPTION)
    if user.grace_period and grace_period_expired(user.grace_period, today):
        return ("needs_to_upgrade", GRACE_PERIOD_ENDED)
    return NO_UPGRADE_NEEDED


def allowed_features_for(user) -> frozenset[str]:
    if settings.SELFHOST:
        return ALL_FEATURES
    if user is None:
        return FREE_FEATURES
    subscription = user.subscription
    if subscription is None:
        # Trial and legacy accounts without a plan get everything.
        return ALL_FEATURES
    return PLAN_FEATURES.get(subscription.plan_key, FREE_FEATURES)
