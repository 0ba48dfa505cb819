from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sitekeeper.core.errors import NotFoundError, ValidationError
from sitekeeper.core.time import utcnow
from sitekeeper.core.utils.domain import normalize_domain
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.memberships import Membership
from sitekeeper.models.sites import Site


def create_site(db: Session, domain: str, owner, timezone: str = "UTC") -> Site:
    try:
        normalized = normalize_domain(domain)
    except ValueError as exc:
        raise ValidationError.single("domain", str(exc)) from exc
    site = Site(domain=normalized, timezone=timezone)
    db.add(site)
    try:
        db.flush()
        db.add(Membership(site_id=site.id, user_id=owner.id, role=RoleEnum.OWNER))
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError.single("domain", "has already been taken") from exc
    db.refresh(site)
    return site


def get_site(db: Session, site_id: int) -> Site:
    site = db.query(Site).filter(Site.id == site_id).first()
    if not site:
        raise NotFoundError("Site")
    return site


def get_site_by_domain(db: Session, domain: str) -> Site | None:
    try:
        normalized = normalize_domain(domain)
    except ValueError:
        return None
    return db.query(Site).filter(Site.domain == normalized).first()


def touch_site(db: Session, site: Site, now: datetime | None = None) -> Site:
    """
    Bump ``updated_at`` so downstream caches keyed on it refresh. Written
    through a Core update so the value is kept exactly; not committed.
    """
    stamp = now or utcnow()
    db.execute(update(Site).where(Site.id == site.id).values(updated_at=stamp))
    db.expire(site, ["updated_at"])
    return site


def delete_site(db: Session, site: Site) -> None:
    db.delete(site)
    db.commit()


def owned_sites(db: Session, user) -> list[Site]:
    return (
        db.query(Site)
        .join(Membership, Membership.site_id == Site.id)
        .filter(Membership.user_id == user.id, Membership.role == RoleEnum.OWNER)
        .order_by(Site.id)
        .all()
    )
