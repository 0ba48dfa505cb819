from sqlalchemy import JSON, Column, Date, Integer, String
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.mixins import TimestampMixin


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    trial_expiry_date = Column(Date, nullable=True)
    # {"id", "allowance_required", "start_date", "end_date", "is_over", "manual_lock"}
    # Dates are ISO strings; replaced wholesale, never mutated in place.
    grace_period = Column(JSON, nullable=True)

    memberships = relationship(
        "Membership",
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    subscriptions = relationship(
        "Subscription",
        back_populates="user",
        lazy="selectin",
        order_by="Subscription.id",
    )

    @property
    def subscription(self):
        return self.subscriptions[-1] if self.subscriptions else None

    @property
    def display_name(self):
        if self.name:
            return self.name
        return self.email.split("@", 1)[0] if self.email else None
