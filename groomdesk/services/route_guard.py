# groomdesk/services/route_guard.py
import logging
from dataclasses import dataclass
from enum import Enum

from groomdesk.core.session_store import LAST_ROUTE, SessionStore
from groomdesk.services.auth_state import AuthSnapshot

logger = logging.getLogger(__name__)


class GuardOutcome(str, Enum):
    RENDER = "render"
    WAITING = "waiting"
    UNAUTHENTICATED = "unauthenticated"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    redirect_to: str | None = None
    # Path to persist as route memory once the view has rendered
    remember: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is GuardOutcome.RENDER


class RouteGuard:
    """
    Decides, per navigation, whether a protected view may render.

    Order of checks:
      1. public path (demo tenant) without requireAdmin -> render, no checks
      2. snapshot still loading -> waiting, never redirect
      3. no identity -> "not authenticated" state, never redirect
      4. requireAdmin without admin flag -> redirect to "/"
      5. otherwise -> render

    Steps 2 and 3 deliberately do not redirect: redirecting while
    hydration is in flight produces redirect loops.
    """

    def __init__(self, public_prefix: str = "/demo", login_path: str = "/login"):
        self.public_prefix = public_prefix
        self.login_path = login_path

    def is_public(self, path: str) -> bool:
        return path == self.public_prefix or path.startswith(self.public_prefix + "/")

    def evaluate(
        self,
        path: str,
        require_admin: bool,
        snapshot: AuthSnapshot,
        query: str = "",
    ) -> GuardDecision:
        if self.is_public(path) and not require_admin:
            return GuardDecision(GuardOutcome.RENDER)

        if snapshot.loading:
            return GuardDecision(GuardOutcome.WAITING)

        if not snapshot.is_authenticated:
            return GuardDecision(GuardOutcome.UNAUTHENTICATED)

        if require_admin and not snapshot.is_admin:
            logger.info(
                "Non-admin user %s blocked from %s", snapshot.identity.id, path
            )
            return GuardDecision(GuardOutcome.REDIRECT, redirect_to="/")

        full_path = f"{path}?{query}" if query else path
        return GuardDecision(GuardOutcome.RENDER, remember=full_path)


class RouteMemory:
    """
    Durable "last route" of an authenticated session, used to restore
    position after a reload or in a new tab.

    Never stores the landing page or anything under the login page.
    """

    def __init__(self, store: SessionStore, login_path: str = "/login"):
        self.store = store
        self.login_path = login_path

    def should_remember(self, path: str) -> bool:
        bare = path.split("?", 1)[0].split("#", 1)[0]
        if bare in ("", "/"):
            return False
        return not (bare == self.login_path or bare.startswith(self.login_path + "/"))

    def remember(self, path: str) -> None:
        """Fire-and-forget: failures are logged, never raised."""
        if not self.should_remember(path):
            return
        try:
            self.store.durable.set(LAST_ROUTE, path)
        except Exception as e:
            logger.error("Could not persist last route %s: %s", path, e)

    def restore(self) -> str | None:
        return self.store.durable.get(LAST_ROUTE)

    def forget(self) -> None:
        self.store.durable.clear(LAST_ROUTE)
