# groomdesk/models/session.py
from enum import Enum

from sqlmodel import SQLModel


class AuthEvent(str, Enum):
    """Identity change notifications, in the names Supabase Auth uses."""

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class AuthContextKind(str, Enum):
    """Coarse kind of session a tab is in."""

    ADMIN = "admin"
    BUSINESS = "business"
    DEMO = "demo"
    NONE = "none"


class ImpersonationRecord(SQLModel):
    """
    Tab-scoped record of an administrator viewing a tenant.

    Reconstructed from the session store on every read; an inactive record
    has no business id or name.
    """

    active: bool = False
    business_id: str | None = None
    business_name: str | None = None
