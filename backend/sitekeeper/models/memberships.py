from sqlalchemy import Column, Enum, ForeignKey, Index, Integer, UniqueConstraint, text
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.mixins import TimestampMixin


class Membership(TimestampMixin, Base):
    __tablename__ = "site_memberships"
    __table_args__ = (
        UniqueConstraint("site_id", "user_id", name="uq_site_membership_site_user"),
        # At most one owner per site, enforced by the database.
        Index(
            "uq_site_membership_owner",
            "site_id",
            unique=True,
            sqlite_where=text("role = 'owner'"),
            postgresql_where=text("role = 'owner'"),
        ),
        Index("ix_site_memberships_user_id", "user_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role = Column(
        Enum(
            RoleEnum,
            name="membership_role_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=RoleEnum.VIEWER,
    )

    site = relationship("Site", back_populates="memberships", lazy="selectin")
    user = relationship("User", back_populates="memberships", lazy="selectin")
