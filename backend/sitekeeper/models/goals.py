from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.mixins import TimestampMixin


class Goal(TimestampMixin, Base):
    __tablename__ = "goals"
    __table_args__ = (
        UniqueConstraint("site_id", "event_name", name="uq_goals_site_event_name"),
        UniqueConstraint("site_id", "page_path", name="uq_goals_site_page_path"),
        CheckConstraint(
            "(event_name IS NULL) <> (page_path IS NULL)",
            name="ck_goals_event_name_xor_page_path",
        ),
        Index("ix_goals_site_id", "site_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    event_name = Column(String, nullable=True)
    page_path = Column(String, nullable=True)
    # Revenue goals only; ISO 4217 code.
    currency = Column(String(3), nullable=True)

    site = relationship("Site", back_populates="goals", lazy="selectin")
    steps = relationship(
        "FunnelStep",
        back_populates="goal",
        lazy="noload",
        passive_deletes=True,
    )
    funnels = relationship(
        "Funnel",
        secondary="funnel_steps",
        lazy="noload",
        viewonly=True,
        order_by="Funnel.id",
    )

    @property
    def revenue(self) -> bool:
        return self.currency is not None

    @property
    def display_name(self) -> str:
        if self.page_path is not None:
            return f"Visit {self.page_path}"
        return self.event_name
