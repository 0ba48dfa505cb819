"""
Locks and unlocks every site a user owns based on their billing state.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from sitekeeper.billing import grace_period
from sitekeeper.billing.quota import (
    GRACE_PERIOD_ENDED,
    NO_ACTIVE_SUBSCRIPTION,
    check_needs_to_upgrade,
)
from sitekeeper.core.logging import get_structured_logger
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.memberships import Membership
from sitekeeper.models.sites import Site
from sitekeeper.notifications import emails, mailer


logger = get_structured_logger(__name__)

UNLOCKED = "unlocked"
GRACE_PERIOD_ENDED_NOW = "grace_period_ended_now"


def set_lock_status_for(db: Session, user, locked: bool) -> int:
    owned_site_ids = (
        db.query(Membership.site_id)
        .filter(Membership.user_id == user.id, Membership.role == RoleEnum.OWNER)
        .scalar_subquery()
    )
    return (
        db.query(Site)
        .filter(Site.id.in_(owned_site_ids), Site.locked != locked)
        .update({Site.locked: locked}, synchronize_session="fetch")
    )


def update_sites_for(db: Session, user, *, send_email: bool = True):
    """
    Re-evaluate the lock flag of every site owned by ``user``.

    Returns ``"unlocked"`` or ``("locked", reason)``. The first time an expired
    grace period is seen it is marked over and the reason is
    ``"grace_period_ended_now"``. Nothing is committed unless ``send_email``
    is set, in which case the lock state is committed before the email is
    queued; transactional callers pass ``send_email=False`` and notify after
    their own commit.
    """
    needs = check_needs_to_upgrade(user)

    if needs == ("needs_to_upgrade", NO_ACTIVE_SUBSCRIPTION):
        set_lock_status_for(db, user, True)
        return ("locked", NO_ACTIVE_SUBSCRIPTION)

    if needs == ("needs_to_upgrade", GRACE_PERIOD_ENDED):
        set_lock_status_for(db, user, True)
        if user.grace_period.get("is_over"):
            return ("locked", GRACE_PERIOD_ENDED)
        user.grace_period = grace_period.end(user.grace_period)
        db.add(user)
        db.flush()
        logger.info("billing.grace_period_ended", extra={"user_id": user.id})
        if send_email:
            db.commit()
            send_grace_period_end_email(db, user)
        return ("locked", GRACE_PERIOD_ENDED_NOW)

    set_lock_status_for(db, user, False)
    return UNLOCKED


def send_grace_period_end_email(db: Session, user):
    return mailer.send(db, emails.dashboard_locked(user))
