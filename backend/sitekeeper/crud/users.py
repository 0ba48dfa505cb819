from datetime import date

from sqlalchemy.orm import Session

from sitekeeper.core.errors import NotFoundError
from sitekeeper.core.time import yesterday
from sitekeeper.models.users import User


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def create_user(
    db: Session,
    email: str,
    name: str | None = None,
    trial_expiry_date: date | None = None,
) -> User:
    user = User(
        email=_normalize_email(email),
        name=name,
        trial_expiry_date=trial_expiry_date,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User")
    return user


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == _normalize_email(email)).first()


def end_trial(user: User, today: date | None = None) -> User:
    """Mark the trial as over by moving its expiry to yesterday. Not persisted."""
    user.trial_expiry_date = yesterday(today)
    return user


def with_subscription(db: Session, user: User) -> User:
    db.refresh(user, attribute_names=["subscriptions"])
    return user
