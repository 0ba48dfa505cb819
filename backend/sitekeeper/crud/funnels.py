from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sitekeeper.billing.features import FUNNELS
from sitekeeper.core.config import settings
from sitekeeper.core.errors import NotFoundError, ValidationError
from sitekeeper.crud.memberships import get_owner_membership
from sitekeeper.models.funnels import Funnel, FunnelStep
from sitekeeper.models.goals import Goal


def _validate_steps(db: Session, site, goal_ids: list[int]) -> list[int]:
    if len(goal_ids) < settings.FUNNEL_MIN_STEPS:
        raise ValidationError.single(
            "steps", f"should have at least {settings.FUNNEL_MIN_STEPS} item(s)"
        )
    if len(goal_ids) > settings.FUNNEL_MAX_STEPS:
        raise ValidationError.single(
            "steps", f"should have at most {settings.FUNNEL_MAX_STEPS} item(s)"
        )
    if len(set(goal_ids)) != len(goal_ids):
        raise ValidationError.single("steps", "goals must be unique within a funnel")
    found = {
        goal_id
        for (goal_id,) in db.query(Goal.id).filter(
            Goal.site_id == site.id, Goal.id.in_(goal_ids)
        )
    }
    if found != set(goal_ids):
        raise ValidationError.single("steps", "goals must belong to the site")
    return goal_ids


def create(db: Session, site, name: str, steps: list) -> Funnel:
    """
    Create a funnel from goals in the given order. ``steps`` holds goal ids
    or ``{"goal_id": ...}`` dicts.
    """
    owner = get_owner_membership(db, site.id)
    FUNNELS.check_availability(owner.user if owner else None)

    name = (name or "").strip()
    if not name:
        raise ValidationError.single("name", "can't be blank")
    goal_ids = [step["goal_id"] if isinstance(step, dict) else step for step in steps or []]
    goal_ids = _validate_steps(db, site, [int(goal_id) for goal_id in goal_ids])

    funnel = Funnel(
        site_id=site.id,
        name=name,
        steps=[
            FunnelStep(goal_id=goal_id, step_order=order)
            for order, goal_id in enumerate(goal_ids, start=1)
        ],
    )
    db.add(funnel)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationError.single("name", "has already been taken") from exc
    db.refresh(funnel)
    return funnel


def get(db: Session, site_id: int, funnel_id: int) -> Funnel:
    funnel = (
        db.query(Funnel)
        .filter(Funnel.id == funnel_id, Funnel.site_id == site_id)
        .populate_existing()
        .first()
    )
    if not funnel:
        raise NotFoundError("Funnel")
    return funnel


def list_for_site(db: Session, site) -> list[Funnel]:
    return (
        db.query(Funnel)
        .filter(Funnel.site_id == site.id)
        .order_by(Funnel.name, Funnel.id)
        .all()
    )


def delete(db: Session, site, funnel_id: int) -> None:
    funnel = get(db, site.id, funnel_id)
    db.delete(funnel)
    db.commit()
