from __future__ import annotations

from sqlalchemy.orm import Session

from sitekeeper.core.logging import get_structured_logger
from sitekeeper.crud.email_queue import create_email_queue
from sitekeeper.notifications.emails import EmailMessage


logger = get_structured_logger(__name__)


def send(db: Session, message: EmailMessage):
    """
    Queue a message for delivery. Fire and forget: a failure is logged and
    never propagates, so callers must only send after their own commit.
    """
    try:
        return create_email_queue(
            db,
            site_id=message.site_id,
            user_id=message.user_id,
            to_email=message.to_email,
            to_name=message.to_name,
            from_email=message.from_email,
            template_key=message.template_key,
            subject=message.subject,
            body=message.body,
            metadata=message.metadata,
        )
    except Exception:
        db.rollback()
        logger.exception(
            "mailer.send_failed",
            extra={"template_key": message.template_key, "user_id": message.user_id},
        )
        return None
