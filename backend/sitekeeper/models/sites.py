from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.mixins import TimestampMixin


class Site(TimestampMixin, Base):
    __tablename__ = "sites"

    id = Column(Integer, primary_key=True, index=True)
    domain = Column(String, unique=True, nullable=False, index=True)
    timezone = Column(String, nullable=False, default="UTC")
    # Gates dashboard access once the owner's billing lapses.
    locked = Column(Boolean, nullable=False, default=False)
    funnels_enabled = Column(Boolean, nullable=False, default=True)
    props_enabled = Column(Boolean, nullable=False, default=True)
    conversions_enabled = Column(Boolean, nullable=False, default=True)

    memberships = relationship(
        "Membership",
        back_populates="site",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    invitations = relationship(
        "Invitation",
        back_populates="site",
        lazy="noload",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    goals = relationship(
        "Goal",
        back_populates="site",
        lazy="noload",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    funnels = relationship(
        "Funnel",
        back_populates="site",
        lazy="noload",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
