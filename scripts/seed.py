"""
Deterministic seed script for dev/demo environments.
"""

from __future__ import annotations

import os
import sys

from sitekeeper.core.db import Base, SessionLocal, engine
from sitekeeper.crud import funnels as funnels_crud
from sitekeeper.crud import goals as goals_crud
from sitekeeper.crud.invitations import create_invitation
from sitekeeper.crud.memberships import create_membership
from sitekeeper.crud.sites import create_site, get_site_by_domain
from sitekeeper.crud.users import create_user, get_user_by_email
from sitekeeper.models.enums import RoleEnum
from sitekeeper.models.invitations import Invitation


def ensure_not_production():
    env = os.getenv("ENV", "").lower()
    allow_prod = os.getenv("ALLOW_SEED_PROD", "0").lower() in {"1", "true", "yes"}
    if env == "production" and not allow_prod:
        print("Refusing to seed in production. Set ALLOW_SEED_PROD=1 to override.", file=sys.stderr)
        sys.exit(1)


def get_or_create_user(db, email: str, name: str):
    return get_user_by_email(db, email) or create_user(db, email, name=name)


def get_or_create_site(db, domain: str, owner):
    return get_site_by_domain(db, domain) or create_site(db, domain, owner)


def seed():
    ensure_not_production()
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        alice = get_or_create_user(db, "alice@example.com", "Alice")
        bob = get_or_create_user(db, "bob@example.com", "Bob")
        get_or_create_user(db, "charlie@example.com", "Charlie")

        shop = get_or_create_site(db, "acme-store.com", alice)
        get_or_create_site(db, "umbrella-login.com", bob)

        if not any(m.user_id == bob.id for m in shop.memberships):
            create_membership(db, shop, bob, RoleEnum.VIEWER)

        signup = goals_crud.find_or_create(db, shop, {"goal_type": "event", "event_name": "Signup"})
        checkout = goals_crud.find_or_create(db, shop, {"goal_type": "page", "page_path": "/checkout"})
        purchase = goals_crud.find_or_create(
            db, shop, {"goal_type": "event", "event_name": "Purchase", "currency": "EUR"}
        )
        if not funnels_crud.list_for_site(db, shop):
            funnels_crud.create(db, shop, "Signup to purchase", [signup.id, checkout.id, purchase.id])

        pending = (
            db.query(Invitation)
            .filter(Invitation.site_id == shop.id, Invitation.email == "charlie@example.com")
            .first()
        )
        if pending is None:
            create_invitation(db, shop, alice, "charlie@example.com", RoleEnum.ADMIN)
    print("Seed complete.")


if __name__ == "__main__":
    seed()
