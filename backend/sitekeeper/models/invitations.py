from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.mixins import TimestampMixin


class Invitation(TimestampMixin, Base):
    __tablename__ = "invitations"
    __table_args__ = (
        UniqueConstraint("site_id", "email", name="uq_invitations_site_email"),
        Index("ix_invitations_email", "email"),
    )

    id = Column(Integer, primary_key=True, index=True)
    invitation_id = Column(String, nullable=False, unique=True, index=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False)
    inviter_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    email = Column(String, nullable=False)
    role = Column(
        Enum(
            RoleEnum,
            name="invitation_role_enum",
            native_enum=False,
            validate_strings=True,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
    )
    expires_at = Column(DateTime, nullable=False)

    site = relationship("Site", back_populates="invitations", lazy="selectin")
    inviter = relationship("User", foreign_keys=[inviter_id], lazy="selectin")
