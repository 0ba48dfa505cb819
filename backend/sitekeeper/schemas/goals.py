from typing import Optional

import pydantic
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic_core import PydanticCustomError

from sitekeeper.core.config import settings
from sitekeeper.core.currencies import is_valid_currency
from sitekeeper.core.errors import ValidationError


def _blank_to_none(value):
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class GoalCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_name: Optional[str] = None
    page_path: Optional[str] = None
    currency: Optional[str] = None

    @field_validator("event_name", "page_path", "currency", mode="before")
    @classmethod
    def strip_whitespace(cls, value):
        return _blank_to_none(value)

    @field_validator("page_path")
    @classmethod
    def ensure_leading_slash(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.startswith("/"):
            return f"/{value}"
        return value

    @field_validator("event_name", "page_path")
    @classmethod
    def check_length(cls, value: Optional[str]) -> Optional[str]:
        limit = settings.GOAL_NAME_MAX_LENGTH
        if value is not None and len(value) > limit:
            raise PydanticCustomError(
                "goal_name_too_long",
                "should be at most {limit} character(s)",
                {"limit": limit},
            )
        return value

    @field_validator("currency")
    @classmethod
    def check_currency(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = value.upper()
        if not is_valid_currency(value):
            raise PydanticCustomError("currency_invalid", "is invalid")
        return value

    @property
    def revenue(self) -> bool:
        return self.currency is not None

    def natural_key(self) -> dict[str, str]:
        if self.page_path is not None:
            return {"page_path": self.page_path}
        return {"event_name": self.event_name}


def parse_goal_params(params: dict) -> GoalCreate:
    """
    Normalise and validate raw goal input. Every problem is reported at once
    as a ``ValidationError`` keyed by field.
    """
    errors = ValidationError()
    try:
        goal = GoalCreate.model_validate(dict(params or {}))
    except pydantic.ValidationError as exc:
        for error in exc.errors():
            field_name = str(error["loc"][0]) if error["loc"] else "base"
            errors.add(field_name, error["msg"])
        raise errors from exc

    if goal.event_name is not None and goal.page_path is not None:
        errors.add("event_name", "cannot co-exist with page_path")
    elif goal.event_name is None and goal.page_path is None:
        errors.add("event_name", "this field is required and cannot be blank")
    if errors.errors:
        raise errors

    # Pageviews never carry revenue.
    if goal.page_path is not None and goal.currency is not None:
        goal = goal.model_copy(update={"currency": None})
    return goal
