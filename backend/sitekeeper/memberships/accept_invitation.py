"""
Accepting invitations, ownership transfers included.

Acceptance is permissive: the accepting user may already be a member of
the site, or may have changed their email since the invitation was sent.
Whatever happens, a site never ends up with two owners, and a transfer
never leaves a site without one.

Every mutation runs inside a single ``Multi`` transaction. Notifications
are queued only after it commits.
"""

from __future__ import annotations

from typing import Callable, Iterable

from sqlalchemy.orm import Session

from sitekeeper.billing import site_locker
from sitekeeper.billing.quota import on_trial
from sitekeeper.core.config import settings
from sitekeeper.core.errors import TransferToSelf
from sitekeeper.core.logging import get_structured_logger
from sitekeeper.core.multi import Multi
from sitekeeper.crud.invitations import find_for_user
from sitekeeper.crud.memberships import (
    get_membership,
    get_owner_membership,
    new_membership,
    set_role,
)
from sitekeeper.crud.users import end_trial, with_subscription
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.memberships import Membership
from sitekeeper.notifications import emails, mailer


logger = get_structured_logger(__name__)

LOCKED_NOW = ("locked", site_locker.GRACE_PERIOD_ENDED_NOW)


def _named(prefix: str) -> Callable[[str], str]:
    if not prefix:
        return lambda name: name
    return lambda name: f"{prefix}:{name}"


def _downgrade_previous_owner(site, new_owner):
    def step(db: Session, changes):
        previous_owner = get_owner_membership(db, site.id)
        if previous_owner is None:
            logger.warning(
                "membership.transfer_without_owner",
                extra={"site_id": site.id, "site_domain": site.domain, "new_owner_id": new_owner.id},
            )
            return None
        # Same owner: keep the role or the site would be left ownerless.
        if previous_owner.user_id == new_owner.id:
            return previous_owner
        set_role(previous_owner, RoleEnum.ADMIN)
        db.flush()
        return previous_owner

    return step


def _maybe_end_trial_of_new_owner(new_owner, selfhost: bool, name: Callable[[str], str]):
    def step(db: Session, changes):
        if selfhost:
            return new_owner
        if not (on_trial(new_owner) or new_owner.trial_expiry_date is None):
            return new_owner
        previous_owner = changes[name("previous_owner_membership")]
        if previous_owner is not None and previous_owner.user_id == new_owner.id:
            return new_owner
        end_trial(new_owner)
        db.add(new_owner)
        db.flush()
        return new_owner

    return step


def _make_owner(site, new_owner):
    def step(db: Session, changes):
        membership = get_membership(db, site.id, new_owner.id)
        if membership is None:
            membership = new_membership(site, new_owner, RoleEnum.OWNER)
        else:
            set_role(membership, RoleEnum.OWNER)
        db.add(membership)
        db.flush()
        return membership

    return step


def _update_site_locks(name: Callable[[str], str]):
    def step(db: Session, changes):
        return site_locker.update_sites_for(db, changes[name("user")], send_email=False)

    return step


def _transfer_steps(site, new_owner, selfhost: bool, prefix: str = "") -> Multi:
    name = _named(prefix)
    multi = (
        Multi()
        .run(name("previous_owner_membership"), _downgrade_previous_owner(site, new_owner))
        .run(name("user"), _maybe_end_trial_of_new_owner(new_owner, selfhost, name))
        .run(name("membership"), _make_owner(site, new_owner))
    )
    if not selfhost:
        multi.run(name("site_locker"), _update_site_locks(name))
    return multi


def _send_lock_email_if_needed(db: Session, user, locker_results: Iterable) -> None:
    if any(result == LOCKED_NOW for result in locker_results):
        site_locker.send_grace_period_end_email(db, with_subscription(db, user))


def _loaded(db: Session, membership: Membership) -> Membership:
    db.refresh(membership)
    return membership


def _selfhost(selfhost: bool | None) -> bool:
    return settings.SELFHOST if selfhost is None else selfhost


def transfer_ownership(db: Session, site, new_owner, *, selfhost: bool | None = None) -> Membership:
    """
    Make ``new_owner`` the owner of ``site``.

    The previous owner becomes an admin. Unless self-hosted, a new owner who
    is on trial (or never had one) has the trial ended, and the lock state
    of every site they own is re-evaluated.
    """
    selfhost = _selfhost(selfhost)
    changes = _transfer_steps(site, new_owner, selfhost).execute(db)
    logger.info(
        "membership.ownership_transferred",
        extra={"site_id": site.id, "user_id": new_owner.id},
    )
    _send_lock_email_if_needed(db, changes["user"], [changes.get("site_locker")])
    return _loaded(db, changes["membership"])


def bulk_transfer_ownership_direct(db: Session, sites, new_owner, *, selfhost: bool | None = None) -> list[Membership]:
    """
    Transfer several sites to ``new_owner`` at once, without invitations.

    Refuses with ``TransferToSelf`` when the user already owns any of them.
    Either every site changes hands or none does.
    """
    selfhost = _selfhost(selfhost)
    sites = list(sites)
    for site in sites:
        owner = get_owner_membership(db, site.id)
        if owner is not None and owner.user_id == new_owner.id:
            raise TransferToSelf(f"User already owns {site.domain}")

    multi = Multi()
    for site in sites:
        multi.append(_transfer_steps(site, new_owner, selfhost, prefix=str(site.id)))
    changes = multi.execute(db)

    for site in sites:
        logger.info(
            "membership.ownership_transferred",
            extra={"site_id": site.id, "user_id": new_owner.id},
        )
    _send_lock_email_if_needed(
        db,
        new_owner,
        [changes.get(f"{site.id}:site_locker") for site in sites],
    )
    return [_loaded(db, changes[f"{site.id}:membership"]) for site in sites]


def _add_member(invitation, user) -> Multi:
    def membership_step(db: Session, changes):
        existing = get_membership(db, invitation.site_id, user.id)
        # An existing membership keeps its role; accepting never downgrades.
        if existing is not None:
            return existing
        membership = new_membership(invitation.site, user, invitation.role)
        db.add(membership)
        db.flush()
        return membership

    return Multi().run("membership", membership_step)


def _invitation_accepted_email(invitation, user) -> emails.EmailMessage:
    if invitation.role == RoleEnum.OWNER:
        return emails.ownership_transfer_accepted(invitation, user.email)
    return emails.invitation_accepted(invitation, user.email)


def accept_invitation(db: Session, invitation_id: str, user, *, selfhost: bool | None = None) -> Membership:
    """
    Accept a pending invitation on behalf of ``user`` and consume it.

    Raises ``NotFoundError`` when no invitation with that token is addressed
    to the user, including when it was already accepted.
    """
    selfhost = _selfhost(selfhost)
    invitation = find_for_user(db, invitation_id, user)
    site = invitation.site
    role = invitation.role

    if role == RoleEnum.OWNER:
        multi = _transfer_steps(site, user, selfhost)
    else:
        multi = _add_member(invitation, user)
    multi.delete("invitation", invitation)

    # Rendered up front; the invitation row is gone once the transaction commits.
    accepted_email = _invitation_accepted_email(invitation, user)
    changes = multi.execute(db)

    logger.info(
        "invitation.accepted",
        extra={"site_id": site.id, "user_id": user.id, "role": role.value},
    )
    if role == RoleEnum.OWNER:
        logger.info(
            "membership.ownership_transferred",
            extra={"site_id": site.id, "user_id": user.id},
        )
    _send_lock_email_if_needed(db, changes.get("user", user), [changes.get("site_locker")])
    mailer.send(db, accepted_email)
    return _loaded(db, changes["membership"])
