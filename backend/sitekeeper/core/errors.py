"""
Error taxonomy shared by the membership, invitation and goal services.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ValidationError(Exception):
    """Raised for field-level constraint violations. Always recoverable."""

    def __init__(self, errors: dict[str, list[str]] | None = None):
        self.errors: dict[str, list[str]] = {}
        for name, messages in (errors or {}).items():
            for message in messages:
                self.add(name, message)
        super().__init__(self._summary())

    @classmethod
    def single(cls, field_name: str, message: str) -> "ValidationError":
        return cls({field_name: [message]})

    def add(self, field_name: str, message: str) -> None:
        self.errors.setdefault(field_name, []).append(message)
        self.args = (self._summary(),)

    def first(self, field_name: str) -> str | None:
        messages = self.errors.get(field_name)
        return messages[0] if messages else None

    def to_payload(self) -> dict[str, Any]:
        return {"code": "validation_error", "errors": self.errors}

    def _summary(self) -> str:
        parts = [
            f"{name}: {', '.join(messages)}" for name, messages in self.errors.items()
        ]
        return "; ".join(parts) or "invalid"


class NotFoundError(Exception):
    """Raised when a referenced entity is absent or not owned by the expected site/user."""

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"{resource} not found")

    def to_payload(self) -> dict[str, Any]:
        return {"code": "not_found", "resource": self.resource}


@dataclass
class FeatureGateError(Exception):
    code: str
    message: str
    status_code: int
    feature: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.feature:
            payload["feature"] = self.feature
        payload.update(self.extra)
        return payload


class UpgradeRequired(FeatureGateError):
    def __init__(self, feature: str, message: str | None = None):
        super().__init__(
            code="upgrade_required",
            message=message or f"Feature '{feature}' requires a plan upgrade",
            status_code=402,
            feature=feature,
        )


class TransferToSelf(Exception):
    """Raised when ownership would be transferred to the user who already owns the site."""


class AlreadyAMember(Exception):
    """Raised when inviting someone who already has a membership on the site."""


class InvitationAlreadySent(Exception):
    """Raised when a pending invitation for the same email and site exists."""


class PermissionDenied(Exception):
    """Raised when an actor may not grant the requested role."""
