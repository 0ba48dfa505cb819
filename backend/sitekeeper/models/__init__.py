from .users import User
from .subscriptions import Subscription
from .sites import Site
from .memberships import Membership
from .invitations import Invitation
from .goals import Goal
from .funnels import Funnel, FunnelStep
from .email_queue import EmailQueue
