from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sitekeeper.core.config import settings
from sitekeeper.core.errors import (
    AlreadyAMember,
    InvitationAlreadySent,
    NotFoundError,
    TransferToSelf,
    ValidationError,
)
from sitekeeper.core.logging import get_structured_logger
from sitekeeper.core.time import utcnow
from sitekeeper.core.tokens import generate_token
from sitekeeper.crud.memberships import get_membership, get_owner_membership
from sitekeeper.crud.users import get_user_by_email
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.invitations import Invitation
from sitekeeper.notifications import emails, mailer


logger = get_structured_logger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def _normalize_role(role: RoleEnum | str) -> RoleEnum:
    if isinstance(role, RoleEnum):
        return role
    try:
        return RoleEnum(role)
    except ValueError as exc:
        raise ValidationError.single("role", "is invalid") from exc


def create_invitation(
    db: Session,
    site,
    inviter,
    email: str,
    role: RoleEnum | str,
    ttl_hours: int | None = None,
) -> Invitation:
    normalized_email = _normalize_email(email)
    if not normalized_email or "@" not in normalized_email:
        raise ValidationError.single("email", "has invalid format")
    normalized_role = _normalize_role(role)
    ttl_hours = ttl_hours if ttl_hours is not None else settings.INVITE_TOKEN_TTL_HOURS
    if ttl_hours <= 0:
        raise ValueError("Invitation TTL must be positive.")

    invitee = get_user_by_email(db, normalized_email)
    if invitee is not None:
        if normalized_role == RoleEnum.OWNER:
            owner = get_owner_membership(db, site.id)
            if owner is not None and owner.user_id == invitee.id:
                raise TransferToSelf(f"{normalized_email} already owns {site.domain}")
        elif get_membership(db, site.id, invitee.id) is not None:
            raise AlreadyAMember(f"{normalized_email} is already a member of {site.domain}")

    invitation = Invitation(
        invitation_id=generate_token(),
        site_id=site.id,
        inviter_id=inviter.id,
        email=normalized_email,
        role=normalized_role,
        expires_at=utcnow() + timedelta(hours=ttl_hours),
    )
    db.add(invitation)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise InvitationAlreadySent(
            f"This invitation has already been sent to {normalized_email}"
        ) from exc
    db.refresh(invitation)
    logger.info(
        "invitation.created",
        extra={"site_id": site.id, "user_id": inviter.id, "role": normalized_role.value},
    )

    if normalized_role == RoleEnum.OWNER:
        mailer.send(db, emails.ownership_transfer_request(invitation))
    else:
        mailer.send(db, emails.new_invitation(invitation))
    return invitation


def find_for_user(db: Session, invitation_id: str, user) -> Invitation:
    """
    Look up a pending invitation by token, scoped to the user's current
    email. The comparison ignores case.
    """
    invitation = (
        db.query(Invitation)
        .filter(
            Invitation.invitation_id == invitation_id,
            func.lower(Invitation.email) == _normalize_email(user.email),
        )
        .first()
    )
    if not invitation:
        raise NotFoundError("Invitation")
    return invitation


def list_invitations(db: Session, site_id: int) -> list[Invitation]:
    return (
        db.query(Invitation)
        .filter(Invitation.site_id == site_id)
        .order_by(Invitation.created_at.desc(), Invitation.id.desc())
        .all()
    )


def delete_invitation(db: Session, invitation: Invitation) -> None:
    db.delete(invitation)
    db.commit()
