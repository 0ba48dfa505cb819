from datetime import date, timedelta
from uuid import uuid4

from sitekeeper.core.time import utcnow
from sitekeeper.crud.memberships import create_membership
from sitekeeper.crud.sites import create_site
from sitekeeper.crud.users import create_user
from sitekeeper.models.enums import RoleEnum, SubscriptionStatusEnum
from sitekeeper.models.goals import Goal
from sitekeeper.models.invitations import Invitation
from sitekeeper.models.subscriptions import Subscription


def make_user(db, *, email: str | None = None, name: str | None = None, trial_expiry_date: date | None = None):
    email = email or f"user_{uuid4().hex[:8]}@example.com"
    return create_user(db, email, name=name, trial_expiry_date=trial_expiry_date)


def make_site(db, *, owner=None, domain: str | None = None):
    owner = owner or make_user(db)
    domain = domain or f"site-{uuid4().hex[:6]}.example.com"
    return create_site(db, domain, owner)


def make_membership(db, *, site, user, role: RoleEnum = RoleEnum.VIEWER):
    return create_membership(db, site, user, role)


def make_subscription(
    db,
    *,
    user,
    plan_key: str = "business",
    status: SubscriptionStatusEnum = SubscriptionStatusEnum.ACTIVE,
    next_bill_date: date | None = None,
):
    subscription = Subscription(
        user_id=user.id,
        plan_key=plan_key,
        status=status,
        next_bill_date=next_bill_date or date.today() + timedelta(days=30),
    )
    db.add(subscription)
    db.commit()
    db.refresh(user)
    return subscription


def make_invitation(db, *, site, inviter, email: str | None = None, role: RoleEnum = RoleEnum.ADMIN):
    """Insert an invitation row directly, without the notification side effects."""
    invitation = Invitation(
        invitation_id=uuid4().hex,
        site_id=site.id,
        inviter_id=inviter.id,
        email=email or f"invitee_{uuid4().hex[:8]}@example.com",
        role=role,
        expires_at=utcnow() + timedelta(hours=48),
    )
    db.add(invitation)
    db.commit()
    db.refresh(invitation)
    return invitation


def make_goal(db, *, site, event_name: str | None = None, page_path: str | None = None, currency: str | None = None):
    if event_name is None and page_path is None:
        event_name = f"Event {uuid4().hex[:6]}"
    goal = Goal(site_id=site.id, event_name=event_name, page_path=page_path, currency=currency)
    db.add(goal)
    db.commit()
    db.refresh(goal)
    return goal
