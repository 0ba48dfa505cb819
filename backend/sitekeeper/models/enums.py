from enum import Enum

# Stored as their lowercase values in plain string columns (native enums disabled).


class RoleEnum(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    VIEWER = "viewer"


class SubscriptionStatusEnum(str, Enum):
    ACTIVE = "active"
    PAST_DUE = "past_due"
    PAUSED = "paused"
    DELETED = "deleted"
