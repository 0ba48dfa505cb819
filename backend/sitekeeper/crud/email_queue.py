from sqlalchemy.orm import Session

from sitekeeper.models.email_queue import EmailQueue


def list_queued_emails(db: Session, *, to_email: str | None = None) -> list[EmailQueue]:
    query = db.query(EmailQueue).filter(EmailQueue.status == "queued")
    if to_email is not None:
        query = query.filter(EmailQueue.to_email == to_email)
    return query.order_by(EmailQueue.id.asc()).all()


def create_email_queue(
    db: Session,
    *,
    site_id: int | None,
    user_id: int | None,
    to_email: str,
    template_key: str,
    subject: str,
    body: str,
    to_name: str | None = None,
    from_email: str | None = None,
    metadata: dict | None = None,
) -> EmailQueue:
    record = EmailQueue(
        site_id=site_id,
        user_id=user_id,
        to_email=to_email,
        to_name=to_name,
        from_email=from_email,
        template_key=template_key,
        subject=subject,
        body=body,
        status="queued",
        metadata_json=metadata or None,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return record
