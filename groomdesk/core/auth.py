# groomdesk/core/auth.py
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

from jose import jwt, JWTError

from groomdesk.core.config import get_settings
from groomdesk.core.events import EventChannel
from groomdesk.core.exceptions import IdentityError
from groomdesk.core.supabase_client import supabase_admin
from groomdesk.models.profile import Identity
from groomdesk.models.session import AuthEvent

logger = logging.getLogger(__name__)

AuthEventCallback = Callable[[AuthEvent, Identity | None], None]


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a Supabase access token (JWT).

    Verification:
      - signature (HS256 using SUPABASE_JWT_SECRET)
      - expiration time (exp)
      - audience is NOT verified (Supabase 'aud' may vary)

    Args:
        token: raw JWT from the Authorization header.

    Returns:
        Decoded JWT claims.

    Raises:
        IdentityError: if token is invalid/expired.
    """
    settings = get_settings()
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[settings.SUPABASE_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError as e:
        raise IdentityError("Invalid or expired token") from e


def identity_from_claims(claims: dict[str, Any]) -> Identity:
    """
    Build an Identity from verified JWT claims.

    Raises:
        IdentityError: if the 'sub' claim is missing.
    """
    sub = claims.get("sub")
    if not sub:
        raise IdentityError("Token missing sub")
    return Identity(id=str(sub), email=claims.get("email"))


@dataclass(frozen=True)
class IdentityChange:
    event: AuthEvent
    identity: Identity | None


class TokenIdentityService:
    """
    Identity Service for one client session, driven by bearer tokens.

    Every request hands its token to `observe_token`; the service turns
    token transitions into Supabase-style auth events:

      - new user (or first token)     -> SIGNED_IN
      - same user, different token    -> TOKEN_REFRESHED
      - explicit `sign_out()`         -> SIGNED_OUT
      - access token past its `exp`   -> SIGNED_OUT

    A request without a token is simply anonymous; it does not sign the
    session out while the last accepted token is still valid.

    `bind` receives every accepted token (and None once the identity is
    gone) so the session's data client can query as that user.
    """

    def __init__(
        self,
        revoke: Callable[[str], Any] | None = None,
        bind: Callable[[str | None], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._revoke = revoke
        self._bind = bind
        self._clock = clock
        self._token: str | None = None
        self._identity: Identity | None = None
        self._expires_at: float | None = None
        self._events: EventChannel[IdentityChange] = EventChannel()

    @property
    def identity(self) -> Identity | None:
        return self._identity

    async def get_current_session(self) -> Identity | None:
        """Return the identity of the last accepted token, unless it expired."""
        self.expire_if_due()
        return self.identity

    def on_auth_event(self, callback: AuthEventCallback) -> Callable[[], None]:
        """Subscribe to auth events; returns the unsubscribe function."""

        def deliver(change: IdentityChange) -> None:
            callback(change.event, change.identity)

        return self._events.subscribe(deliver)

    def observe_token(self, token: str | None) -> AuthEvent | None:
        """
        Feed the bearer token of the current request.

        Returns:
            The event emitted, or None if nothing changed.

        Raises:
            IdentityError: if the token does not verify.
        """
        expired = self.expire_if_due()
        if not token:
            return AuthEvent.SIGNED_OUT if expired else None

        claims = decode_access_token(token)
        identity = identity_from_claims(claims)

        if self._identity is None or self._identity.id != identity.id:
            event = AuthEvent.SIGNED_IN
        elif token != self._token:
            event = AuthEvent.TOKEN_REFRESHED
        else:
            return None

        self._token = token
        self._identity = identity
        self._expires_at = claims.get("exp")
        if self._bind is not None:
            self._bind(token)
        logger.info("Auth event %s for user %s", event.value, identity.id)
        self._events.publish(IdentityChange(event, identity))
        return event

    async def sign_out(self) -> None:
        """
        Best-effort sign-out.

        Revocation failures are logged and never block the local sign-out:
        the SIGNED_OUT event is always emitted.
        """
        token = self._token
        if token and self._revoke is not None:
            try:
                await asyncio.to_thread(self._revoke, token)
            except Exception as e:
                logger.error("Session revocation failed: %s", e)

        self._drop_identity()

    def expire_if_due(self) -> bool:
        """
        Sign out locally once the last accepted token has expired.

        Returns:
            True if the identity was dropped by this call.
        """
        if self._identity is None or self._expires_at is None:
            return False
        if self._clock() < self._expires_at:
            return False
        logger.info("Access token expired for user %s", self._identity.id)
        self._drop_identity()
        return True

    def _drop_identity(self) -> None:
        user_id = self._identity.id if self._identity else None
        self._token = None
        self._identity = None
        self._expires_at = None
        if self._bind is not None:
            self._bind(None)
        logger.info("Auth event SIGNED_OUT for user %s", user_id)
        self._events.publish(IdentityChange(AuthEvent.SIGNED_OUT, None))

    def close(self) -> None:
        self._events.clear()


def supabase_revoker() -> Callable[[str], Any] | None:
    """
    Return a callable that revokes a user's session through the Supabase
    Auth admin API, or None when no service role key is configured.
    """
    if not get_settings().SUPABASE_SERVICE_ROLE_KEY:
        return None

    def revoke(token: str) -> None:
        supabase_admin().auth.admin.sign_out(token)

    return revoke
