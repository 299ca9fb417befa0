# groomdesk/services/auth_state.py
"""
Auth State Controller.

Owns the single authoritative AuthSnapshot for one client session and
its hydration lifecycle:

    UNINITIALIZED -> LOADING -> READY_ANONYMOUS | READY_AUTHENTICATED
                  -> LOADING -> ...            (until DISPOSED)

Hydration resolves the identity, then the profile, then the business,
each fetch bounded by its own timeout. Any fetch failure degrades that
field to None; the identity itself stays valid.

Every hydration carries a generation number taken when it is requested
(identity events take theirs in emission order). A completion whose
generation is no longer current is discarded, so a slow fetch for an
old identity can never overwrite the snapshot of a newer event.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from pydantic import BaseModel, ConfigDict, computed_field

from groomdesk.core.events import EventChannel
from groomdesk.core.session_store import IMPERSONATION_KEYS, SessionStore, StoreChange
from groomdesk.models.business import Business
from groomdesk.models.profile import Identity, Profile
from groomdesk.models.session import AuthEvent

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 5.0


class IdentityService(Protocol):
    async def get_current_session(self) -> Identity | None: ...

    def on_auth_event(
        self, callback: Callable[[AuthEvent, Identity | None], None]
    ) -> Callable[[], None]: ...

    async def sign_out(self) -> None: ...


class ProfileSource(Protocol):
    async def get_by_id(self, profile_id: str) -> Profile | None: ...


class BusinessSource(Protocol):
    async def get_by_id(self, business_id: str) -> Business | None: ...


class ControllerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY_ANONYMOUS = "ready_anonymous"
    READY_AUTHENTICATED = "ready_authenticated"
    DISPOSED = "disposed"


class AuthSnapshot(BaseModel):
    """
    Immutable view of auth state, replaced wholesale on every hydration.

    While `loading` is True the other fields may be stale and must not
    drive routing decisions.
    """

    model_config = ConfigDict(frozen=True)

    identity: Identity | None = None
    profile: Profile | None = None
    business: Business | None = None
    loading: bool = False

    @computed_field
    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.is_super_admin

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None


class AuthStateController:
    """Hydrates and publishes the AuthSnapshot of one client session."""

    def __init__(
        self,
        identity_service: IdentityService,
        profiles: ProfileSource,
        businesses: BusinessSource,
        store: SessionStore,
        profile_timeout: float = DEFAULT_FETCH_TIMEOUT,
        business_timeout: float = DEFAULT_FETCH_TIMEOUT,
    ):
        self.identity_service = identity_service
        self.profiles = profiles
        self.businesses = businesses
        self.store = store
        self.profile_timeout = profile_timeout
        self.business_timeout = business_timeout

        # Consumers must wait for the first hydration
        self._snapshot = AuthSnapshot(loading=True)
        self._state = ControllerState.UNINITIALIZED
        self._generation = 0
        self._tasks: set[asyncio.Task] = set()
        self._snapshots: EventChannel[AuthSnapshot] = EventChannel()
        self._releases: list[Callable[[], None]] = []

    # ----- Read side -----

    @property
    def snapshot(self) -> AuthSnapshot:
        return self._snapshot

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_impersonating(self) -> bool:
        return self.store.impersonation.active

    @property
    def impersonating_business_name(self) -> str | None:
        return self.store.impersonation.business_name

    def subscribe(self, callback: Callable[[AuthSnapshot], None]) -> Callable[[], None]:
        """Receive every published snapshot; returns the unsubscribe function."""
        return self._snapshots.subscribe(callback)

    # ----- Lifecycle -----

    @property
    def started(self) -> bool:
        return self._state is not ControllerState.UNINITIALIZED

    async def start(self) -> AuthSnapshot:
        """Subscribe to identity/store events and run the initial hydration."""
        if self.started:
            return self._snapshot

        logger.debug("Auth controller start: initial hydration")
        self._releases.append(self.identity_service.on_auth_event(self.on_identity_event))
        self._releases.append(self.store.tab.changes.subscribe(self._on_store_change))
        return await self.hydrate()

    def dispose(self) -> None:
        """Release all subscriptions. Pending hydrations finish unobserved."""
        for release in self._releases:
            release()
        self._releases.clear()
        self._snapshots.clear()
        self._state = ControllerState.DISPOSED

    async def wait_until_settled(self) -> AuthSnapshot:
        """Await every in-flight hydration, the initial one included."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return self._snapshot

    # ----- Hydration -----

    async def hydrate(self, identity_override: Identity | None = None) -> AuthSnapshot:
        """
        Rebuild the snapshot.

        Args:
            identity_override: identity already pushed by an auth event;
              skips the session query when given.

        Returns:
            The current snapshot after this hydration (which may belong to
            a newer generation if this one was superseded).
        """
        generation = self._begin()
        return await self._track(self._hydrate(generation, identity_override))

    def on_identity_event(self, event: AuthEvent, identity: Identity | None) -> None:
        """Auth event callback; must be called from within the event loop."""
        if self._state is ControllerState.DISPOSED:
            return

        if event is AuthEvent.SIGNED_OUT:
            self._generation += 1
            self.store.clear_impersonation()
            self._commit(AuthSnapshot())
            return

        if event in (AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED):
            generation = self._begin()
            self._track(self._hydrate(generation, identity))

    def _track(self, hydration: Awaitable[AuthSnapshot]) -> asyncio.Task:
        # Concurrent callers find it through wait_until_settled()
        task = asyncio.get_running_loop().create_task(hydration)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _begin(self) -> int:
        self._generation += 1
        if self._state is not ControllerState.DISPOSED:
            self._commit(self._snapshot.model_copy(update={"loading": True}))
        return self._generation

    async def _hydrate(self, generation: int, identity_override: Identity | None) -> AuthSnapshot:
        identity: Identity | None = None
        profile: Profile | None = None
        business: Business | None = None

        logger.debug("Hydration %d start", generation)
        try:
            if identity_override is not None:
                identity = identity_override
            else:
                identity = await self._current_identity()

            if identity is not None:
                profile = await self._fetch(
                    "profile", self.profiles.get_by_id(identity.id), self.profile_timeout
                )
                if profile is None:
                    logger.warning("No profile found for user %s", identity.id)
                elif profile.is_provisioned:
                    business = await self._fetch(
                        "business",
                        self.businesses.get_by_id(profile.business_id),
                        self.business_timeout,
                    )
                else:
                    # Provisioning gap, not an error
                    logger.warning("Profile has no business_id: %s", profile.email)
        except asyncio.CancelledError:
            logger.debug("Hydration %d aborted", generation)
        except Exception:
            logger.exception("Unexpected error during hydration %d", generation)
        finally:
            if generation != self._generation or self._state is ControllerState.DISPOSED:
                logger.debug(
                    "Discarding hydration %d (current generation %d)",
                    generation,
                    self._generation,
                )
            else:
                self._commit(
                    AuthSnapshot(identity=identity, profile=profile, business=business)
                )
                logger.debug(
                    "Hydration %d end: user=%s profile=%s business=%s",
                    generation,
                    identity.id if identity else None,
                    profile is not None,
                    business is not None,
                )
        return self._snapshot

    async def _current_identity(self) -> Identity | None:
        try:
            return await self.identity_service.get_current_session()
        except Exception as e:
            logger.error("Error getting session: %s", e)
            return None

    async def _fetch(self, what: str, fetch: Awaitable[Any], timeout: float) -> Any:
        try:
            return await asyncio.wait_for(fetch, timeout)
        except asyncio.TimeoutError:
            logger.warning("%s fetch timed out after %ss", what.capitalize(), timeout)
        except Exception as e:
            logger.error("Error fetching %s: %s", what, e)
        return None

    # ----- Publication -----

    def _commit(self, snapshot: AuthSnapshot) -> None:
        self._snapshot = snapshot
        if snapshot.loading:
            self._state = ControllerState.LOADING
        elif snapshot.identity is not None:
            self._state = ControllerState.READY_AUTHENTICATED
        else:
            self._state = ControllerState.READY_ANONYMOUS
        self._snapshots.publish(snapshot)

    def _on_store_change(self, change: StoreChange) -> None:
        # Impersonation banners read the store; re-announce the snapshot
        if change.key in IMPERSONATION_KEYS:
            self._snapshots.publish(self._snapshot)
