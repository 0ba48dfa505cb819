from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sitekeeper.core.errors import NotFoundError, PermissionDenied, ValidationError
from sitekeeper.core.logging import get_structured_logger
from sitekeeper.memberships.permissions import can_grant_role
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.memberships import Membership
from sitekeeper.notifications import emails, mailer


logger = get_structured_logger(__name__)


def _normalize_role(role: RoleEnum | str) -> RoleEnum:
    if isinstance(role, RoleEnum):
        return role
    try:
        return RoleEnum(role)
    except ValueError as exc:
        raise ValidationError.single("role", "is invalid") from exc


def get_membership(db: Session, site_id: int, user_id: int) -> Membership | None:
    return (
        db.query(Membership)
        .filter(Membership.site_id == site_id, Membership.user_id == user_id)
        .first()
    )


def get_owner_membership(db: Session, site_id: int) -> Membership | None:
    return (
        db.query(Membership)
        .filter(Membership.site_id == site_id, Membership.role == RoleEnum.OWNER)
        .first()
    )


def list_memberships(db: Session, site_id: int) -> list[Membership]:
    return (
        db.query(Membership)
        .filter(Membership.site_id == site_id)
        .order_by(Membership.id)
        .all()
    )


def new_membership(site, user, role: RoleEnum | str) -> Membership:
    """Build an unsaved membership; the caller decides when it is persisted."""
    return Membership(
        site_id=site.id,
        user_id=user.id,
        role=_normalize_role(role),
        site=site,
        user=user,
    )


def set_role(membership: Membership, role: RoleEnum | str) -> Membership:
    membership.role = _normalize_role(role)
    return membership


def create_membership(db: Session, site, user, role: RoleEnum | str) -> Membership:
    membership = new_membership(site, user, role)
    db.add(membership)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if membership.role == RoleEnum.OWNER:
            raise ValidationError.single("role", "site already has an owner") from exc
        raise ValidationError.single("user_id", "has already been taken") from exc
    db.refresh(membership)
    return membership


def _get_site_membership(db: Session, site, membership_id: int) -> Membership:
    membership = (
        db.query(Membership)
        .filter(Membership.id == membership_id, Membership.site_id == site.id)
        .first()
    )
    if not membership:
        raise NotFoundError("Membership")
    return membership


def update_role(
    db: Session,
    site,
    membership_id: int,
    new_role: RoleEnum | str,
    *,
    actor,
    actor_role: RoleEnum | str,
) -> Membership:
    membership = _get_site_membership(db, site, membership_id)
    normalized_role = _normalize_role(new_role)
    if membership.role == RoleEnum.OWNER:
        raise PermissionDenied("The owner's role can only change through an ownership transfer")
    if not can_grant_role(actor_role, normalized_role, to_self=membership.user_id == actor.id):
        raise PermissionDenied(f"You are not allowed to grant the {normalized_role.value} role")
    membership.role = normalized_role
    db.commit()
    db.refresh(membership)
    logger.info(
        "membership.role_changed",
        extra={"site_id": site.id, "user_id": membership.user_id, "role": normalized_role.value},
    )
    return membership


def remove_member(db: Session, site, membership_id: int) -> Membership:
    membership = _get_site_membership(db, site, membership_id)
    if membership.role == RoleEnum.OWNER:
        raise PermissionDenied("The owner cannot be removed from a site")
    message = emails.site_member_removed(membership)
    db.delete(membership)
    db.commit()
    logger.info(
        "membership.removed",
        extra={"site_id": site.id, "user_id": membership.user_id},
    )
    mailer.send(db, message)
    return membership
