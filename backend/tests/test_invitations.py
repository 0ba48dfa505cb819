import os
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from sitekeeper.core.db import Base
from sitekeeper.core.errors import (
    AlreadyAMember,
    InvitationAlreadySent,
    NotFoundError,
    TransferToSelf,
    ValidationError,
)
from sitekeeper.core.time import utcnow
from sitekeeper.crud.invitations import (
    create_invitation,
    delete_invitation,
    find_for_user,
    list_invitations,
)
from sitekeeper.models.email_queue import EmailQueue
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.invitations import Invitation
from tests.factories import make_invitation, make_membership, make_site, make_user


@pytest.fixture
def db_session(tmp_path):
    db_url = f"sqlite:///{tmp_path}/invitations_test.db"
    engine = create_engine(db_url, future=True)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    with TestingSessionLocal() as session:
        yield session


def test_create_invitation_sets_token_expiry_and_queues_email(db_session):
    inviter = make_user(db_session)
    site = make_site(db_session, owner=inviter)

    invitation = create_invitation(db_session, site, inviter, " New.Person@Example.com ", "admin")

    assert invitation.email == "new.person@example.com"
    assert invitation.role == RoleEnum.ADMIN
    assert len(invitation.invitation_id) >= 24
    assert utcnow() + timedelta(hours=47) < invitation.expires_at <= utcnow() + timedelta(hours=48)

    [email] = db_session.query(EmailQueue).filter(EmailQueue.to_email == "new.person@example.com").all()
    assert email.template_key == "new_invitation"
    assert invitation.invitation_id in email.body


def test_ownership_invitation_queues_transfer_request(db_session):
    inviter = make_user(db_session)
    site = make_site(db_session, owner=inviter)

    create_invitation(db_session, site, inviter, "heir@example.com", RoleEnum.OWNER)

    [email] = db_session.query(EmailQueue).filter(EmailQueue.to_email == "heir@example.com").all()
    assert email.template_key == "ownership_transfer_request"


def test_create_invitation_refuses_transfer_to_current_owner(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)

    with pytest.raises(TransferToSelf):
        create_invitation(db_session, site, owner, owner.email, RoleEnum.OWNER)

    assert list_invitations(db_session, site.id) == []


def test_create_invitation_refuses_existing_member(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)
    member = make_user(db_session)
    make_membership(db_session, site=site, user=member, role=RoleEnum.VIEWER)

    with pytest.raises(AlreadyAMember):
        create_invitation(db_session, site, owner, member.email, RoleEnum.ADMIN)


def test_existing_member_can_be_offered_ownership(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)
    member = make_user(db_session)
    make_membership(db_session, site=site, user=member, role=RoleEnum.ADMIN)

    invitation = create_invitation(db_session, site, owner, member.email, RoleEnum.OWNER)

    assert invitation.role == RoleEnum.OWNER


def test_create_invitation_refuses_duplicate(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)
    create_invitation(db_session, site, owner, "twice@example.com", RoleEnum.VIEWER)

    with pytest.raises(InvitationAlreadySent):
        create_invitation(db_session, site, owner, "TWICE@example.com", RoleEnum.ADMIN)

    assert len(list_invitations(db_session, site.id)) == 1


def test_create_invitation_validates_input(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)

    with pytest.raises(ValidationError):
        create_invitation(db_session, site, owner, "not-an-email", RoleEnum.VIEWER)
    with pytest.raises(ValidationError):
        create_invitation(db_session, site, owner, "ok@example.com", "superuser")


def test_find_for_user_matches_token_and_email(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)
    invitee = make_user(db_session, email="guest@example.com")
    invitation = make_invitation(db_session, site=site, inviter=owner, email="Guest@Example.com")

    found = find_for_user(db_session, invitation.invitation_id, invitee)

    assert found.id == invitation.id


def test_find_for_user_after_email_change_is_not_found(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)
    invitee = make_user(db_session, email="old@example.com")
    invitation = make_invitation(db_session, site=site, inviter=owner, email="old@example.com")
    invitee.email = "new@example.com"
    db_session.commit()

    with pytest.raises(NotFoundError):
        find_for_user(db_session, invitation.invitation_id, invitee)


def test_delete_invitation(db_session):
    owner = make_user(db_session)
    site = make_site(db_session, owner=owner)
    invitation = make_invitation(db_session, site=site, inviter=owner)

    delete_invitation(db_session, invitation)

    assert db_session.query(Invitation).count() == 0
