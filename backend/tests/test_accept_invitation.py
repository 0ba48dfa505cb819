import os
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sitekeeper.billing import grace_period, site_locker
from sitekeeper.core.db import Base
from sitekeeper.core.errors import NotFoundError
from sitekeeper.core.time import today, yesterday
from sitekeeper.crud.memberships import get_membership
from sitekeeper.memberships.accept_invitation import accept_invitation
from sitekeeper.models.email_queue import EmailQueue
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.invitations import Invitation
from sitekeeper.models.memberships import Membership
from tests.factories import (
    make_invitation,
    make_membership,
    make_site,
    make_subscription,
    make_user,
)


@pytest.fixture
def db_session(tmp_path):
    db_url = f"sqlite:///{tmp_path}/accept_invitation_test.db"
    engine = create_engine(db_url, future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as session:
        yield session


def _invitation_exists(db, invitation_id: str) -> bool:
    return db.query(Invitation).filter(Invitation.invitation_id == invitation_id).count() > 0


def _emails_to(db, email: str) -> list[EmailQueue]:
    return db.query(EmailQueue).filter(EmailQueue.to_email == email).order_by(EmailQueue.id).all()


def test_converts_invitation_into_membership(db_session):
    inviter = make_user(db_session)
    invitee = make_user(db_session)
    site = make_site(db_session, owner=inviter)
    invitation = make_invitation(
        db_session, site=site, inviter=inviter, email=invitee.email, role=RoleEnum.ADMIN
    )
    token = invitation.invitation_id

    membership = accept_invitation(db_session, token, invitee)

    assert membership.site_id == site.id
    assert membership.user_id == invitee.id
    assert membership.role == RoleEnum.ADMIN
    assert not _invitation_exists(db_session, token)

    [email] = _emails_to(db_session, inviter.email)
    assert email.template_key == "invitation_accepted"
    assert email.subject == (
        f"[Sitekeeper Analytics] {invitee.email} accepted your invitation to {site.domain}"
    )


def test_accepting_admin_invitation_as_owner_keeps_ownership(db_session):
    user = make_user(db_session)
    site = make_site(db_session, owner=user)
    owner_membership = get_membership(db_session, site.id, user.id)
    invitation = make_invitation(
        db_session, site=site, inviter=user, email=user.email, role=RoleEnum.ADMIN
    )
    token = invitation.invitation_id

    membership = accept_invitation(db_session, token, user)

    assert membership.id == owner_membership.id
    assert membership.role == RoleEnum.OWNER
    assert not _invitation_exists(db_session, token)


def test_accepting_as_existing_member_keeps_existing_role(db_session):
    inviter = make_user(db_session)
    invitee = make_user(db_session)
    site = make_site(db_session, owner=inviter)
    existing = make_membership(db_session, site=site, user=invitee, role=RoleEnum.ADMIN)
    invitation = make_invitation(
        db_session, site=site, inviter=inviter, email=invitee.email, role=RoleEnum.VIEWER
    )
    token = invitation.invitation_id

    membership = accept_invitation(db_session, token, invitee)

    assert membership.id == existing.id
    assert membership.role == RoleEnum.ADMIN
    assert not _invitation_exists(db_session, token)


def test_invitation_email_matches_case_insensitively(db_session):
    inviter = make_user(db_session)
    invitee = make_user(db_session, email="jane@example.com")
    site = make_site(db_session, owner=inviter)
    invitation = make_invitation(
        db_session, site=site, inviter=inviter, email="Jane@Example.COM", role=RoleEnum.VIEWER
    )

    membership = accept_invitation(db_session, invitation.invitation_id, invitee)

    assert membership.role == RoleEnum.VIEWER


def test_nonexistent_invitation_raises_not_found(db_session):
    invitee = make_user(db_session)

    with pytest.raises(NotFoundError):
        accept_invitation(db_session, "does_not_exist", invitee)


def test_invitation_for_another_email_raises_not_found(db_session):
    inviter = make_user(db_session)
    site = make_site(db_session, owner=inviter)
    invitation = make_invitation(db_session, site=site, inviter=inviter, email="someone@example.com")
    intruder = make_user(db_session)

    with pytest.raises(NotFoundError):
        accept_invitation(db_session, invitation.invitation_id, intruder)

    assert _invitation_exists(db_session, invitation.invitation_id)


def test_accepting_twice_raises_not_found(db_session):
    inviter = make_user(db_session)
    invitee = make_user(db_session)
    site = make_site(db_session, owner=inviter)
    invitation = make_invitation(db_session, site=site, inviter=inviter, email=invitee.email)
    token = invitation.invitation_id

    accept_invitation(db_session, token, invitee)
    with pytest.raises(NotFoundError):
        accept_invitation(db_session, token, invitee)

    assert db_session.query(Membership).filter(Membership.user_id == invitee.id).count() == 1


@pytest.mark.parametrize("selfhost", [False, True])
def test_converts_ownership_transfer_into_membership(db_session, selfhost):
    existing_owner = make_user(db_session)
    new_owner = make_user(db_session)
    site = make_site(db_session, owner=existing_owner)
    invitation = make_invitation(
        db_session, site=site, inviter=existing_owner, email=new_owner.email, role=RoleEnum.OWNER
    )
    token = invitation.invitation_id

    membership = accept_invitation(db_session, token, new_owner, selfhost=selfhost)

    assert membership.site_id == site.id
    assert membership.user_id == new_owner.id
    assert membership.role == RoleEnum.OWNER
    assert not _invitation_exists(db_session, token)
    assert get_membership(db_session, site.id, existing_owner.id).role == RoleEnum.ADMIN

    [email] = _emails_to(db_session, existing_owner.email)
    assert email.template_key == "ownership_transfer_accepted"
    assert email.subject == (
        f"[Sitekeeper Analytics] {new_owner.email} accepted the ownership transfer of {site.domain}"
    )


@pytest.mark.parametrize("role", [RoleEnum.VIEWER, RoleEnum.ADMIN])
def test_ownership_transfer_upgrades_existing_membership(db_session, role):
    existing_owner = make_user(db_session)
    new_owner = make_user(db_session)
    site = make_site(db_session, owner=existing_owner)
    existing = make_membership(db_session, site=site, user=new_owner, role=role)
    invitation = make_invitation(
        db_session, site=site, inviter=existing_owner, email=new_owner.email, role=RoleEnum.OWNER
    )

    membership = accept_invitation(db_session, invitation.invitation_id, new_owner)

    assert membership.id == existing.id
    assert membership.role == RoleEnum.OWNER
    assert get_membership(db_session, site.id, existing_owner.id).role == RoleEnum.ADMIN


def test_ownership_transfer_to_self_keeps_trial(db_session):
    owner = make_user(db_session, trial_expiry_date=None)
    site = make_site(db_session, owner=owner)
    invitation = make_invitation(
        db_session, site=site, inviter=owner, email=owner.email, role=RoleEnum.OWNER
    )

    membership = accept_invitation(db_session, invitation.invitation_id, owner)

    assert membership.role == RoleEnum.OWNER
    db_session.refresh(owner)
    assert owner.trial_expiry_date is None


def test_ownership_transfer_locks_site_without_subscription(db_session):
    existing_owner = make_user(db_session)
    site = make_site(db_session, owner=existing_owner)
    new_owner = make_user(db_session, trial_expiry_date=today() + timedelta(days=7))
    invitation = make_invitation(
        db_session, site=site, inviter=existing_owner, email=new_owner.email, role=RoleEnum.OWNER
    )

    accept_invitation(db_session, invitation.invitation_id, new_owner)

    db_session.refresh(site)
    db_session.refresh(new_owner)
    assert new_owner.trial_expiry_date == yesterday()
    assert site.locked is True


def test_selfhosted_ownership_transfer_skips_billing(db_session):
    existing_owner = make_user(db_session)
    site = make_site(db_session, owner=existing_owner)
    new_owner = make_user(db_session, trial_expiry_date=None)
    invitation = make_invitation(
        db_session, site=site, inviter=existing_owner, email=new_owner.email, role=RoleEnum.OWNER
    )

    accept_invitation(db_session, invitation.invitation_id, new_owner, selfhost=True)

    db_session.refresh(site)
    db_session.refresh(new_owner)
    assert new_owner.trial_expiry_date is None
    assert site.locked is False


def test_ownership_transfer_past_grace_period_sends_both_emails(db_session):
    existing_owner = make_user(db_session)
    site = make_site(db_session, owner=existing_owner)
    new_owner = make_user(db_session, name="Jane Smith", trial_expiry_date=yesterday())
    make_subscription(db_session, user=new_owner, next_bill_date=today())
    new_owner.grace_period = grace_period.start(
        7, allowance_required=100, today=today() - timedelta(days=8)
    )
    db_session.commit()
    invitation = make_invitation(
        db_session, site=site, inviter=existing_owner, email=new_owner.email, role=RoleEnum.OWNER
    )

    accept_invitation(db_session, invitation.invitation_id, new_owner)

    db_session.refresh(new_owner)
    assert new_owner.grace_period["is_over"] is True
    [locked_email] = _emails_to(db_session, new_owner.email)
    assert locked_email.template_key == "dashboard_locked"
    [accepted_email] = _emails_to(db_session, existing_owner.email)
    assert accepted_email.template_key == "ownership_transfer_accepted"


def test_failed_notification_does_not_undo_acceptance(db_session, monkeypatch):
    import sitekeeper.notifications.mailer as mailer_module

    inviter = make_user(db_session)
    invitee = make_user(db_session)
    site = make_site(db_session, owner=inviter)
    invitation = make_invitation(db_session, site=site, inviter=inviter, email=invitee.email)

    def _boom(*args, **kwargs):
        raise RuntimeError("smtp down")

    monkeypatch.setattr(mailer_module, "create_email_queue", _boom)

    membership = accept_invitation(db_session, invitation.invitation_id, invitee)

    assert membership.user_id == invitee.id
    assert get_membership(db_session, site.id, invitee.id) is not None
    assert db_session.query(EmailQueue).count() == 0


def test_failed_site_lock_rolls_back_ownership_acceptance(db_session, monkeypatch):
    existing_owner = make_user(db_session)
    site = make_site(db_session, owner=existing_owner)
    new_owner = make_user(db_session, trial_expiry_date=None)
    invitation = make_invitation(
        db_session, site=site, inviter=existing_owner, email=new_owner.email, role=RoleEnum.OWNER
    )
    token = invitation.invitation_id

    def _locker_down(*args, **kwargs):
        raise RuntimeError("locker unavailable")

    monkeypatch.setattr(site_locker, "update_sites_for", _locker_down)

    with pytest.raises(RuntimeError) as excinfo:
        accept_invitation(db_session, token, new_owner)

    assert excinfo.value.failed_step == "site_locker"
    assert get_membership(db_session, site.id, existing_owner.id).role == RoleEnum.OWNER
    assert get_membership(db_session, site.id, new_owner.id) is None
    assert _invitation_exists(db_session, token)
    db_session.refresh(new_owner)
    assert new_owner.trial_expiry_date is None
    assert db_session.query(EmailQueue).count() == 0
