from sqlalchemy import Column, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.mixins import TimestampMixin


class Funnel(TimestampMixin, Base):
    __tablename__ = "funnels"
    __table_args__ = (
        UniqueConstraint("site_id", "name", name="uq_funnels_site_name"),
        Index("ix_funnels_site_id", "site_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)

    site = relationship("Site", back_populates="funnels", lazy="selectin")
    steps = relationship(
        "FunnelStep",
        back_populates="funnel",
        lazy="selectin",
        order_by="FunnelStep.step_order",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class FunnelStep(TimestampMixin, Base):
    __tablename__ = "funnel_steps"
    __table_args__ = (
        UniqueConstraint("funnel_id", "goal_id", name="uq_funnel_steps_funnel_goal"),
        Index("ix_funnel_steps_goal_id", "goal_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    funnel_id = Column(Integer, ForeignKey("funnels.id", ondelete="CASCADE"), nullable=False)
    goal_id = Column(Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False)
    step_order = Column(Integer, nullable=False)

    funnel = relationship("Funnel", back_populates="steps", lazy="selectin")
    goal = relationship("Goal", back_populates="steps", lazy="selectin")
