from sqlalchemy import Column, Date, Enum, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.enums import SubscriptionStatusEnum
from sitekeeper.models.mixins import TimestampMixin


class Subscription(TimestampMixin, Base):
    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_user_id", "user_id"),
        Index("ix_subscriptions_plan_key", "plan_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    plan_key = Column(String, nullable=False)
    status = Column(
        Enum(
            SubscriptionStatusEnum,
            name="subscription_status_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=SubscriptionStatusEnum.ACTIVE,
    )
    next_bill_date = Column(Date, nullable=True)
    last_bill_date = Column(Date, nullable=True)

    user = relationship("User", back_populates="subscriptions", lazy="selectin")
