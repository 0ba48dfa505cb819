"""
Goal persistence that keeps funnels consistent.

Goals are referenced by funnel steps. Deleting a goal removes its steps by
cascade; a funnel that would drop below the minimum number of steps is
deleted together with the goal so no undersized funnel survives.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, insert
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value

from sitekeeper.billing.features import REVENUE_GOALS
from sitekeeper.core.config import settings
from sitekeeper.core.errors import NotFoundError, ValidationError
from sitekeeper.core.logging import get_structured_logger
from sitekeeper.core.multi import Multi
from sitekeeper.core.time import utcnow
from sitekeeper.crud.memberships import get_owner_membership
from sitekeeper.crud.sites import touch_site
from sitekeeper.models.funnels import Funnel
from sitekeeper.models.goals import Goal
from sitekeeper.schemas.goals import GoalCreate, parse_goal_params


logger = get_structured_logger(__name__)

INSERTED = "insert"
UPSERTED = "upsert"


def _taken(goal: GoalCreate) -> ValidationError:
    field_name = "page_path" if goal.page_path is not None else "event_name"
    return ValidationError.single(field_name, "has already been taken")


def _get_by_natural_key(db: Session, site_id: int, goal: GoalCreate) -> Goal | None:
    query = db.query(Goal).filter(Goal.site_id == site_id)
    for column, value in goal.natural_key().items():
        query = query.filter(getattr(Goal, column) == value)
    return query.first()


def _check_feature_access(db: Session, site, goal: GoalCreate) -> None:
    if not goal.revenue:
        return
    owner = get_owner_membership(db, site.id)
    REVENUE_GOALS.check_availability(owner.user if owner else None)


def _insert_ignoring_conflicts(db: Session, site, goal: GoalCreate) -> bool:
    values = {
        "site_id": site.id,
        "event_name": goal.event_name,
        "page_path": goal.page_path,
        "currency": goal.currency,
    }
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(Goal).values(**values).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite_insert(Goal).values(**values).on_conflict_do_nothing()
    else:
        if _get_by_natural_key(db, site.id, goal) is not None:
            return False
        stmt = insert(Goal).values(**values)
    result = db.execute(stmt)
    return bool(result.rowcount)


def _insert_goal(db: Session, site, goal: GoalCreate, upsert: bool) -> tuple[str, Goal]:
    _check_feature_access(db, site, goal)

    if upsert:
        inserted = _insert_ignoring_conflicts(db, site, goal)
        record = _get_by_natural_key(db, site.id, goal)
        if record is None:
            # Conflicted on a key other than the natural one.
            raise _taken(goal)
        return (INSERTED if inserted else UPSERTED), record

    record = Goal(
        site_id=site.id,
        event_name=goal.event_name,
        page_path=goal.page_path,
        currency=goal.currency,
    )
    db.add(record)
    try:
        db.flush()
    except IntegrityError as exc:
        raise _taken(goal) from exc
    return INSERTED, record


def create(
    db: Session,
    site,
    params: dict,
    *,
    now: datetime | None = None,
    upsert: bool = False,
) -> Goal:
    """
    Create a goal for ``site``.

    A genuinely inserted revenue goal bumps ``site.updated_at`` to ``now`` so
    caches keyed on it pick up the new currency. Upsert hits return the
    existing row untouched.
    """
    goal = parse_goal_params(params)
    now = now or utcnow()
    try:
        outcome, record = _insert_goal(db, site, goal, upsert)
        if outcome == INSERTED and record.revenue:
            touch_site(db, site, now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(record)
    return record


def find_or_create(db: Session, site, params: dict) -> Goal:
    goal_type = params.get("goal_type")
    if goal_type == "event":
        event_name = params.get("event_name")
        if not isinstance(event_name, str):
            raise ValidationError.single("event_name", "is missing")
        currency = params.get("currency")
        if isinstance(currency, str):
            goal = create(
                db, site, {"event_name": event_name, "currency": currency}, upsert=True
            )
            if (goal.currency or "") != currency.strip().upper():
                raise ValidationError.single(
                    "event_name",
                    f"'{goal.event_name}' (with currency: {goal.currency or ''}) has already been taken",
                )
            return goal
        return create(db, site, {"event_name": event_name}, upsert=True)

    if goal_type == "page":
        page_path = params.get("page_path")
        if page_path is None:
            raise ValidationError.single("page_path", "is missing")
        return create(db, site, {"page_path": page_path}, upsert=True)

    raise ValidationError.single("goal_type", "is invalid")


def _trimmed(goal: Goal) -> Goal:
    # Legacy rows may carry stray whitespace. Fix the loaded copy only,
    # without marking it dirty.
    for column in ("event_name", "page_path"):
        value = getattr(goal, column)
        if isinstance(value, str) and value != value.strip():
            set_committed_value(goal, column, value.strip())
    return goal


def for_site(db: Session, site, *, preload_funnels: bool = False) -> list[Goal]:
    query = db.query(Goal).filter(Goal.site_id == site.id)
    if preload_funnels:
        query = query.options(selectinload(Goal.funnels)).populate_existing()
    goals = query.order_by(Goal.id.desc()).all()
    return [_trimmed(goal) for goal in goals]


def _load_goal(db: Session, goal_id: int, site_id: int) -> Goal:
    goal = (
        db.query(Goal)
        .options(selectinload(Goal.funnels).selectinload(Funnel.steps))
        .filter(Goal.id == goal_id, Goal.site_id == site_id)
        .populate_existing()
        .first()
    )
    if goal is None:
        raise NotFoundError("Goal")
    return goal


def _funnel_ids_to_wipe(goal: Goal) -> list[int]:
    return [
        funnel.id
        for funnel in goal.funnels
        if len(funnel.steps) <= settings.FUNNEL_MIN_STEPS
    ]


def _wipe_funnels(changes):
    funnel_ids = changes["funnel_ids_to_wipe"]
    if not funnel_ids:
        return None
    return Multi().delete_all(
        "delete_funnels",
        lambda db, _: db.query(Funnel).filter(Funnel.id.in_(funnel_ids)),
    )


def delete(db: Session, goal_id: int, site) -> None:
    """
    Delete a goal together with every funnel that would fall below the
    minimum step count without it. Longer funnels lose the step by cascade.
    """
    site_id = getattr(site, "id", site)
    changes = (
        Multi()
        .run("goal", lambda db, _: _load_goal(db, goal_id, site_id))
        .run("funnel_ids_to_wipe", lambda db, changes: _funnel_ids_to_wipe(changes["goal"]))
        .merge(_wipe_funnels)
        .delete_all(
            "delete_goals",
            lambda db, _: db.query(Goal).filter(Goal.id == goal_id, Goal.site_id == site_id),
        )
        .execute(db)
    )
    db.expire_all()
    logger.info(
        "goal.deleted",
        extra={
            "site_id": site_id,
            "goal_id": goal_id,
            "funnels_wiped": len(changes["funnel_ids_to_wipe"]),
        },
    )


def count(db: Session, site) -> int:
    return db.query(func.count(Goal.id)).filter(Goal.site_id == site.id).scalar()
