# groomdesk/services/client_session.py
import logging
import time
from collections import OrderedDict
from functools import partial
from typing import Callable

from groomdesk.core.auth import TokenIdentityService, supabase_revoker
from groomdesk.core.config import Settings
from groomdesk.core.session_store import KeyValueStore, SessionStore
from groomdesk.core.supabase_client import bind_access_token, supabase_session_client
from groomdesk.models.session import AuthContextKind
from groomdesk.repositories.business_repo import BusinessRepository
from groomdesk.repositories.impersonation_repo import ImpersonationRepository
from groomdesk.repositories.profile_repo import ProfileRepository
from groomdesk.services.auth_routing import (
    clear_auth_context,
    is_demo_mode,
    set_auth_context,
    set_business_slug,
)
from groomdesk.services.auth_state import AuthSnapshot, AuthStateController
from groomdesk.services.impersonation import ImpersonationFlow
from groomdesk.services.route_guard import RouteGuard, RouteMemory

logger = logging.getLogger(__name__)


class ClientSession:
    """
    Everything one browser tab owns: its session store, identity
    service, auth controller, route guard, route memory and
    impersonation flow.
    """

    def __init__(
        self,
        store: SessionStore,
        identity: TokenIdentityService,
        controller: AuthStateController,
        guard: RouteGuard,
        route_memory: RouteMemory,
        impersonation: ImpersonationFlow,
    ):
        self.store = store
        self.identity = identity
        self.controller = controller
        self.guard = guard
        self.route_memory = route_memory
        self.impersonation = impersonation
        self._release_snapshot = controller.subscribe(self._on_snapshot)

    @property
    def snapshot(self) -> AuthSnapshot:
        return self.controller.snapshot

    def active_business_id(self, path: str | None = None) -> str | None:
        return self.impersonation.resolve_business_id(self.snapshot.profile, path)

    async def sign_out(self) -> None:
        """
        Sign the tab out.

        Impersonation is cleared first, then the identity is signed out
        (best effort), then every routing flag and the route memory.
        """
        self.store.clear_impersonation()
        await self.identity.sign_out()
        clear_auth_context(self.store)
        self.route_memory.forget()

    def close(self) -> None:
        self._release_snapshot()
        self.controller.dispose()
        self.identity.close()
        self.store.close()

    def _on_snapshot(self, snapshot: AuthSnapshot) -> None:
        # Keep the coarse auth context in step with hydrated state
        if snapshot.loading or is_demo_mode(self.store):
            return
        if not snapshot.is_authenticated:
            clear_auth_context(self.store)
            return
        if snapshot.is_admin:
            set_auth_context(self.store, AuthContextKind.ADMIN)
        else:
            set_auth_context(self.store, AuthContextKind.BUSINESS)
        set_business_slug(self.store, snapshot.business)


def build_client_session(store: SessionStore, settings: Settings) -> ClientSession:
    """
    Wire a ClientSession against the configured Supabase project.

    The session owns its data client; accepted access tokens are bound to
    it so every read and RPC runs as the signed-in user.
    """
    client = supabase_session_client()
    businesses = BusinessRepository(client)
    identity = TokenIdentityService(
        revoke=supabase_revoker(),
        bind=partial(bind_access_token, client),
    )
    controller = AuthStateController(
        identity,
        ProfileRepository(client),
        businesses,
        store,
        profile_timeout=settings.PROFILE_FETCH_TIMEOUT,
        business_timeout=settings.BUSINESS_FETCH_TIMEOUT,
    )
    return ClientSession(
        store=store,
        identity=identity,
        controller=controller,
        guard=RouteGuard(settings.DEMO_PATH_PREFIX, settings.LOGIN_PATH),
        route_memory=RouteMemory(store, settings.LOGIN_PATH),
        impersonation=ImpersonationFlow(
            store,
            ImpersonationRepository(client),
            businesses,
            admin_path=settings.ADMIN_DASHBOARD_PATH,
            failure_redirect_delay=settings.IMPERSONATION_FAILURE_REDIRECT_DELAY,
            demo_prefix=settings.DEMO_PATH_PREFIX,
            demo_business_id=settings.DEMO_BUSINESS_ID,
        ),
    )


class SessionRegistry:
    """
    In-process registry of client sessions.

    Tab ids map to ClientSessions (tab-scoped state); device ids map to
    the durable store shared by every tab of the same browser.

    Both maps are bounded: entries idle for longer than `idle_ttl`
    seconds are evicted on the next lookup, and the least recently used
    entry goes once `max_sessions` is exceeded. Evicted sessions are
    closed.
    """

    def __init__(
        self,
        factory: Callable[[SessionStore], ClientSession],
        max_sessions: int = 10_000,
        idle_ttl: float = 12 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.factory = factory
        self.max_sessions = max_sessions
        self.idle_ttl = idle_ttl
        self.clock = clock
        self._tabs: OrderedDict[str, tuple[ClientSession, float]] = OrderedDict()
        self._devices: OrderedDict[str, tuple[KeyValueStore, float]] = OrderedDict()

    def get_or_create(self, tab_id: str, device_id: str) -> ClientSession:
        now = self.clock()
        self._evict_idle(now)

        durable = self._touch_device(device_id, now)
        entry = self._tabs.pop(tab_id, None)
        if entry is not None:
            session = entry[0]
        else:
            session = self.factory(SessionStore(durable=durable))
            logger.debug("New client session for tab %s", tab_id)
        self._tabs[tab_id] = (session, now)

        while len(self._tabs) > self.max_sessions:
            evicted_id, _ = next(iter(self._tabs.items()))
            logger.debug("Evicting least recently used tab %s", evicted_id)
            self.drop(evicted_id)
        return session

    def drop(self, tab_id: str) -> None:
        entry = self._tabs.pop(tab_id, None)
        if entry is not None:
            entry[0].close()

    def close(self) -> None:
        for tab_id in list(self._tabs):
            self.drop(tab_id)
        self._devices.clear()

    def __len__(self) -> int:
        return len(self._tabs)

    def _touch_device(self, device_id: str, now: float) -> KeyValueStore:
        entry = self._devices.pop(device_id, None)
        durable = entry[0] if entry is not None else KeyValueStore()
        self._devices[device_id] = (durable, now)
        while len(self._devices) > self.max_sessions:
            self._devices.popitem(last=False)
        return durable

    def _evict_idle(self, now: float) -> None:
        # Entries are kept in last-seen order, oldest first
        cutoff = now - self.idle_ttl
        while self._tabs:
            tab_id, (_, seen) = next(iter(self._tabs.items()))
            if seen > cutoff:
                break
            logger.debug("Evicting idle tab %s", tab_id)
            self.drop(tab_id)
        while self._devices:
            _, (_, seen) = next(iter(self._devices.items()))
            if seen > cutoff:
                break
            self._devices.popitem(last=False)
