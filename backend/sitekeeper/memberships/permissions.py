"""
Who may grant which role to whom.

Every ``(actor_role, new_role, target)`` combination is listed explicitly;
anything missing from the table is denied. Ownership is never granted here,
it only moves through an ownership transfer.
"""

from sitekeeper.models.enums import RoleEnum


SELF = "self"
OTHER = "other"

ROLE_GRANT_PERMISSIONS: dict[tuple[RoleEnum, RoleEnum, str], bool] = {
    (RoleEnum.OWNER, RoleEnum.OWNER, SELF): False,
    (RoleEnum.OWNER, RoleEnum.ADMIN, SELF): False,
    (RoleEnum.OWNER, RoleEnum.VIEWER, SELF): False,
    (RoleEnum.ADMIN, RoleEnum.OWNER, SELF): False,
    (RoleEnum.ADMIN, RoleEnum.ADMIN, SELF): False,
    (RoleEnum.ADMIN, RoleEnum.VIEWER, SELF): True,
    (RoleEnum.VIEWER, RoleEnum.OWNER, SELF): False,
    (RoleEnum.VIEWER, RoleEnum.ADMIN, SELF): False,
    (RoleEnum.VIEWER, RoleEnum.VIEWER, SELF): False,
    (RoleEnum.OWNER, RoleEnum.OWNER, OTHER): False,
    (RoleEnum.OWNER, RoleEnum.ADMIN, OTHER): True,
    (RoleEnum.OWNER, RoleEnum.VIEWER, OTHER): True,
    (RoleEnum.ADMIN, RoleEnum.OWNER, OTHER): False,
    (RoleEnum.ADMIN, RoleEnum.ADMIN, OTHER): True,
    (RoleEnum.ADMIN, RoleEnum.VIEWER, OTHER): True,
    (RoleEnum.VIEWER, RoleEnum.OWNER, OTHER): False,
    (RoleEnum.VIEWER, RoleEnum.ADMIN, OTHER): False,
    (RoleEnum.VIEWER, RoleEnum.VIEWER, OTHER): False,
}


def can_grant_role(actor_role: RoleEnum | str, new_role: RoleEnum | str, *, to_self: bool) -> bool:
    key = (RoleEnum(actor_role), RoleEnum(new_role), SELF if to_self else OTHER)
    return ROLE_GRANT_PERMISSIONS.get(key, False)
