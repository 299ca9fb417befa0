# groomdesk/models/profile.py
from datetime import datetime

from sqlmodel import SQLModel, Field


class Identity(SQLModel):
    """
    Authenticated principal as supplied by Supabase Auth.

    Built from the access token claims ("sub", "email"). The application
    only observes identities; it never creates or mutates them.
    """

    id: str = Field(description="Supabase auth.users.id (JWT 'sub')")
    email: str | None = Field(default=None, description="Email claim, if present")


class Profile(SQLModel):
    """
    Application-level user record linked to an Identity.

    Mirrors a row of public.profiles, created by the signup flow. This core
    only reads it.

    Invariant:
      - business_id is None => unprovisioned account (signup never
        completed checkout, or the link was removed).
    """

    id: str = Field(description="Matches Supabase auth.users.id")
    email: str
    full_name: str | None = None
    is_super_admin: bool = Field(
        default=False,
        description="Administrator flag; grants the /admin portal",
    )
    business_id: str | None = Field(
        default=None,
        description="Tenant this profile belongs to",
    )
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_provisioned(self) -> bool:
        return bool(self.business_id)
