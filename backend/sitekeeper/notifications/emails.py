"""
Templated notification messages. Builders only render; delivery is the
mailer's job.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sitekeeper.core.config import settings


TEMPLATE_INVITATION_ACCEPTED = "invitation_accepted"
TEMPLATE_OWNERSHIP_TRANSFER_ACCEPTED = "ownership_transfer_accepted"
TEMPLATE_NEW_INVITATION = "new_invitation"
TEMPLATE_OWNERSHIP_TRANSFER_REQUEST = "ownership_transfer_request"
TEMPLATE_SITE_MEMBER_REMOVED = "site_member_removed"
TEMPLATE_DASHBOARD_LOCKED = "dashboard_locked"


@dataclass(frozen=True)
class EmailMessage:
    template_key: str
    to_email: str
    subject: str
    body: str
    to_name: str | None = None
    site_id: int | None = None
    user_id: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    from_email: str = field(default_factory=lambda: settings.MAILER_FROM_EMAIL)


def _base_url() -> str:
    return (settings.APP_BASE_URL or "http://localhost:8000").rstrip("/")


def _branded(subject: str) -> str:
    return f"[{settings.MAILER_BRAND}] {subject}"


def invitation_accepted(invitation, invitee_email: str) -> EmailMessage:
    domain = invitation.site.domain
    return EmailMessage(
        template_key=TEMPLATE_INVITATION_ACCEPTED,
        to_email=invitation.inviter.email,
        subject=_branded(f"{invitee_email} accepted your invitation to {domain}"),
        body=(
            f"{invitee_email} has accepted your invitation to {domain} "
            f"as {invitation.role.value}.\n\n"
            f"Manage people: {_base_url()}/{domain}/settings/people"
        ),
        site_id=invitation.site_id,
        user_id=invitation.inviter_id,
        metadata={"invitation_id": invitation.invitation_id},
    )


def ownership_transfer_accepted(invitation, invitee_email: str) -> EmailMessage:
    domain = invitation.site.domain
    return EmailMessage(
        template_key=TEMPLATE_OWNERSHIP_TRANSFER_ACCEPTED,
        to_email=invitation.inviter.email,
        subject=_branded(f"{invitee_email} accepted the ownership transfer of {domain}"),
        body=(
            f"{invitee_email} is now the owner of {domain}. "
            "Your role has been changed to admin."
        ),
        site_id=invitation.site_id,
        user_id=invitation.inviter_id,
        metadata={"invitation_id": invitation.invitation_id},
    )


def new_invitation(invitation) -> EmailMessage:
    domain = invitation.site.domain
    return EmailMessage(
        template_key=TEMPLATE_NEW_INVITATION,
        to_email=invitation.email,
        subject=_branded(f"You've been invited to {domain}"),
        body=(
            f"{invitation.inviter.email} has invited you to join {domain} "
            f"as {invitation.role.value}.\n\n"
            f"Accept: {_base_url()}/sites/invitations/{invitation.invitation_id}/accept"
        ),
        site_id=invitation.site_id,
        metadata={"invitation_id": invitation.invitation_id},
    )


def ownership_transfer_request(invitation) -> EmailMessage:
    domain = invitation.site.domain
    return EmailMessage(
        template_key=TEMPLATE_OWNERSHIP_TRANSFER_REQUEST,
        to_email=invitation.email,
        subject=_branded(f"Request to transfer ownership of {domain}"),
        body=(
            f"{invitation.inviter.email} has requested to transfer the ownership "
            f"of {domain} to you.\n\n"
            f"Accept: {_base_url()}/sites/invitations/{invitation.invitation_id}/accept"
        ),
        site_id=invitation.site_id,
        metadata={"invitation_id": invitation.invitation_id},
    )


def site_member_removed(membership) -> EmailMessage:
    domain = membership.site.domain
    return EmailMessage(
        template_key=TEMPLATE_SITE_MEMBER_REMOVED,
        to_email=membership.user.email,
        to_name=membership.user.name,
        subject=_branded(f"Your access to {domain} has been removed"),
        body=f"You are no longer a member of {domain}.",
        site_id=membership.site_id,
        user_id=membership.user_id,
    )


def dashboard_locked(user) -> EmailMessage:
    return EmailMessage(
        template_key=TEMPLATE_DASHBOARD_LOCKED,
        to_email=user.email,
        to_name=user.name,
        subject=f"[Action required] Your {settings.MAILER_BRAND} dashboard is now locked",
        body=(
            "Your grace period has ended and the dashboards of the sites you own "
            "are now locked. Upgrade your subscription to regain access.\n\n"
            f"Billing: {_base_url()}/settings/billing"
        ),
        user_id=user.id,
    )
