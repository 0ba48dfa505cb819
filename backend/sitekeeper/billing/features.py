"""
Plan-gated site features.

Every feature answers the same two questions: is it available to a given
user (``check_availability``) and can it be switched on or off for a site
(``toggle``). The closed set of variants is resolved through ``FEATURES``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from sitekeeper.billing.quota import (
    FEATURE_FUNNELS,
    FEATURE_GOALS,
    FEATURE_PROPS,
    FEATURE_REVENUE_GOALS,
    FREE_FEATURES,
    allowed_features_for,
)
from sitekeeper.core.errors import UpgradeRequired
from sitekeeper.crud.memberships import get_owner_membership


@dataclass(frozen=True)
class Feature:
    key: str
    display_name: str
    toggle_field: str | None = None

    @property
    def free(self) -> bool:
        return self.key in FREE_FEATURES

    def check_availability(self, user) -> None:
        if self.free or self.key in allowed_features_for(user):
            return
        raise UpgradeRequired(
            self.key,
            f"{self.display_name} is part of the Business plan. Upgrade your account to use it.",
        )

    def enabled(self, site) -> bool:
        if self.toggle_field is None:
            return True
        return bool(getattr(site, self.toggle_field))

    def toggle(self, db: Session, site, override: bool | None = None):
        if self.toggle_field is None:
            raise ValueError(f"{self.display_name} cannot be toggled")
        current = bool(getattr(site, self.toggle_field))
        desired = (not current) if override is None else bool(override)
        if desired:
            owner = get_owner_membership(db, site.id)
            self.check_availability(owner.user if owner else None)
        setattr(site, self.toggle_field, desired)
        db.commit()
        db.refresh(site)
        return site


FUNNELS = Feature(FEATURE_FUNNELS, "Funnels", "funnels_enabled")
PROPS = Feature(FEATURE_PROPS, "Custom Properties", "props_enabled")
GOALS = Feature(FEATURE_GOALS, "Goals", "conversions_enabled")
REVENUE_GOALS = Feature(FEATURE_REVENUE_GOALS, "Revenue Goals")

# Public keys accepted by the disable-feature action.
FEATURES: dict[str, Feature] = {
    "funnels": FUNNELS,
    "props": PROPS,
    "conversions": GOALS,
}


def get_feature(key: str) -> Feature:
    feature = FEATURES.get((key or "").strip().lower())
    if feature is None:
        valid = ", ".join(FEATURES)
        raise ValueError(
            f"The feature you tried to disable is not valid. Valid features are: {valid}"
        )
    return feature


def disable_feature(db: Session, site, feature_key: str):
    return get_feature(feature_key).toggle(db, site, override=False)
