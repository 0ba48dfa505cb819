from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from sitekeeper.core.db import Base
from sitekeeper.models.mixins import TimestampMixin


class EmailQueue(TimestampMixin, Base):
    __tablename__ = "email_queue"
    __table_args__ = (
        Index("ix_email_queue_status_created", "status", "created_at"),
        Index("ix_email_queue_template_key", "template_key"),
    )

    id = Column(Integer, primary_key=True, index=True)
    site_id = Column(Integer, ForeignKey("sites.id", ondelete="SET NULL"), nullable=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    to_email = Column(String, nullable=False)
    to_name = Column(String, nullable=True)
    from_email = Column(String, nullable=True)
    template_key = Column(String, nullable=False)
    subject = Column(String, nullable=False)
    body = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="queued")
    sent_at = Column(DateTime, nullable=True)
    metadata_json = Column(JSON, nullable=True)

    site = relationship("Site", lazy="selectin")
    user = relationship("User", lazy="selectin")
