# groomdesk/schemas/session.py
from pydantic import ConfigDict, field_validator
from sqlmodel import SQLModel

from groomdesk.core.session_store import SUPPORTED_LANGUAGES
from groomdesk.models.business import Business
from groomdesk.models.profile import Identity, Profile
from groomdesk.models.session import AuthContextKind, ImpersonationRecord


class SessionRead(SQLModel):
    """
    Auth snapshot of the calling tab, plus the session flags the UI
    headers read (impersonation banner, auth context, language).
    """

    user: Identity | None = None
    profile: Profile | None = None
    business: Business | None = None
    is_admin: bool = False
    loading: bool = False
    is_impersonating: bool = False
    impersonating_business_name: str | None = None
    active_business_id: str | None = None
    auth_context: AuthContextKind = AuthContextKind.NONE
    language: str = "en"


class RouteRead(SQLModel):
    """A navigation target (None when there is nothing to restore)."""

    path: str | None = None


class DemoModeUpdate(SQLModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool


class LanguageUpdate(SQLModel):
    """Display language change; only the shipped translations are accepted."""

    model_config = ConfigDict(extra="forbid")

    language: str

    @field_validator("language")
    @classmethod
    def normalize_language(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in SUPPORTED_LANGUAGES:
            raise ValueError(f"language must be one of {', '.join(SUPPORTED_LANGUAGES)}")
        return v


class PortalPageRead(SQLModel):
    """Tenant portal page: which business its data must be read for."""

    business_slug: str
    page: str
    active_business_id: str | None = None
    impersonation: ImpersonationRecord


class AdminPageRead(SQLModel):
    page: str
    admin_email: str | None = None
    impersonation: ImpersonationRecord
