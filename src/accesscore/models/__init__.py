from accesscore.db.database import Base

# Import all models so Alembic and create_all can discover them
from .user import User
from .user_identity import UserIdentity
from .org_ref import OrgRef
from .site_ref import SiteRef
from .membership import Membership
from .site_membership import SiteMembership
from .audit_log import AuditLog

__all__ = [
    "Base",
    "User",
    "UserIdentity",
    "OrgRef",
    "SiteRef",
    "Membership",
    "SiteMembership",
    "AuditLog",
]
