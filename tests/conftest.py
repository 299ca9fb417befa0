"""Global test configuration for GroomDesk."""

import asyncio
import os
import time

# Settings are read at import time by groomdesk.main; set dummy values
# before any groomdesk module is imported. Real env vars take precedence.
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-supabase-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret")
os.environ.pop("SUPABASE_SERVICE_ROLE_KEY", None)

import pytest
from jose import jwt

from groomdesk.core.auth import TokenIdentityService
from groomdesk.core.config import get_settings
from groomdesk.core.exceptions import ImpersonationError
from groomdesk.core.session_store import SessionStore
from groomdesk.models.business import Business
from groomdesk.models.profile import Identity, Profile
from groomdesk.services.auth_state import AuthStateController
from groomdesk.services.client_session import ClientSession
from groomdesk.services.impersonation import ImpersonationFlow
from groomdesk.services.route_guard import RouteGuard, RouteMemory

get_settings.cache_clear()

ADMIN_ID = "11111111-1111-1111-1111-111111111111"
OWNER_ID = "22222222-2222-2222-2222-222222222222"
BIZ_ID = "biz_1"
OWNER_BIZ_ID = "biz_owner"


def make_token(sub: str, email: str, **claims) -> str:
    """Sign a Supabase-style access token with the test secret."""
    payload = {"sub": sub, "email": email, "exp": int(time.time()) + 3600, **claims}
    return jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeProfiles:
    """Profile source with per-id delays and failures."""

    def __init__(self, profiles: dict[str, Profile] | None = None):
        self.profiles = profiles or {}
        self.delays: dict[str, float] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    async def get_by_id(self, profile_id: str) -> Profile | None:
        self.calls.append(profile_id)
        await asyncio.sleep(self.delays.get(profile_id, 0))
        if profile_id in self.errors:
            raise self.errors[profile_id]
        return self.profiles.get(profile_id)


class FakeBusinesses:
    def __init__(self, businesses: dict[str, Business] | None = None):
        self.businesses = businesses or {}
        self.delays: dict[str, float] = {}
        self.errors: dict[str, Exception] = {}
        self.calls: list[str] = []

    async def get_by_id(self, business_id: str) -> Business | None:
        self.calls.append(business_id)
        await asyncio.sleep(self.delays.get(business_id, 0))
        if business_id in self.errors:
            raise self.errors[business_id]
        return self.businesses.get(business_id)

    async def get_name(self, business_id: str) -> str | None:
        business = await self.get_by_id(business_id)
        return business.name if business else None


class FakeTokens:
    """Single-use token exchange, like the use_impersonation_token RPC."""

    def __init__(self, tokens: dict[str, str] | None = None):
        self.tokens = dict(tokens or {})
        self.used: set[str] = set()

    def issue(self, token: str, business_id: str) -> str:
        self.tokens[token] = business_id
        return token

    async def redeem(self, token: str) -> str:
        if token in self.used or token not in self.tokens:
            raise ImpersonationError("Invalid or expired token")
        self.used.add(token)
        return self.tokens[token]


class FakeIdentityService(TokenIdentityService):
    """Token-less identity service: events are pushed directly."""

    def __init__(self, identity: Identity | None = None):
        super().__init__()
        self._identity = identity
        self.session_error: Exception | None = None

    async def get_current_session(self) -> Identity | None:
        if self.session_error is not None:
            raise self.session_error
        return self._identity


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def identity() -> Identity:
    return Identity(id=OWNER_ID, email="owner@acme.test")


@pytest.fixture
def admin_identity() -> Identity:
    return Identity(id=ADMIN_ID, email="admin@groomdesk.test")


@pytest.fixture
def owner_profile() -> Profile:
    return Profile(id=OWNER_ID, email="owner@acme.test", business_id=OWNER_BIZ_ID)


@pytest.fixture
def admin_profile() -> Profile:
    return Profile(id=ADMIN_ID, email="admin@groomdesk.test", is_super_admin=True)


@pytest.fixture
def acme() -> Business:
    return Business(id=BIZ_ID, name="Acme Grooming", email="hello@acme.test")


@pytest.fixture
def owner_business() -> Business:
    return Business(
        id=OWNER_BIZ_ID,
        name="Paws 'n' Claws",
        email="paws@claws.test",
        subscription_tier="pro",
        subscription_status="active",
    )


@pytest.fixture
def profiles(owner_profile, admin_profile) -> FakeProfiles:
    return FakeProfiles({OWNER_ID: owner_profile, ADMIN_ID: admin_profile})


@pytest.fixture
def businesses(acme, owner_business) -> FakeBusinesses:
    return FakeBusinesses({BIZ_ID: acme, OWNER_BIZ_ID: owner_business})


@pytest.fixture
def tokens() -> FakeTokens:
    return FakeTokens()


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


def make_client_session(
    store: SessionStore,
    profiles: FakeProfiles,
    businesses: FakeBusinesses,
    tokens: FakeTokens,
    identity_service: TokenIdentityService | None = None,
    profile_timeout: float = 0.5,
) -> ClientSession:
    """Wire a ClientSession against in-memory fakes."""
    identity_service = identity_service or TokenIdentityService()
    controller = AuthStateController(
        identity_service,
        profiles,
        businesses,
        store,
        profile_timeout=profile_timeout,
        business_timeout=profile_timeout,
    )
    return ClientSession(
        store=store,
        identity=identity_service,
        controller=controller,
        guard=RouteGuard("/demo", "/login"),
        route_memory=RouteMemory(store, "/login"),
        impersonation=ImpersonationFlow(
            store,
            tokens,
            businesses,
            admin_path="/admin",
            failure_redirect_delay=3,
            demo_prefix="/demo",
            demo_business_id="00000000-0000-0000-0000-000000000001",
        ),
    )
