# groomdesk/core/dependencies.py
"""
FastAPI dependencies that attach a request to its client session and
gate protected routes.

Cookie handling lives in `session_cookies` (HTTP middleware) so that
routes returning a Response directly (redirects, HTML pages) still get
their cookies.
"""

import logging
import uuid
from html import escape

from fastapi import BackgroundTasks, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from groomdesk.core.config import get_settings
from groomdesk.core.exceptions import IdentityError
from groomdesk.services.client_session import (
    ClientSession,
    SessionRegistry,
    build_client_session,
)
from groomdesk.services.route_guard import GuardDecision, GuardOutcome

logger = logging.getLogger(__name__)

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so anonymous tabs still get a session (and the guard decides).
bearer_scheme = HTTPBearer(auto_error=False)

_registry: SessionRegistry | None = None


def get_registry() -> SessionRegistry:
    """Get or create the process-wide session registry."""
    global _registry
    if _registry is None:
        settings = get_settings()
        _registry = SessionRegistry(
            lambda store: build_client_session(store, settings),
            max_sessions=settings.MAX_CLIENT_SESSIONS,
            idle_ttl=settings.CLIENT_SESSION_IDLE_TTL,
        )
    return _registry


def reset_registry() -> None:
    """Close and forget every client session (shutdown / tests)."""
    global _registry
    if _registry is not None:
        _registry.close()
    _registry = None


async def session_cookies(request: Request, call_next):
    """
    Assign tab / device ids before routing and persist them afterwards.

    The tab cookie has no max-age (dies with the browser session); the
    device cookie is durable.
    """
    settings = get_settings()
    tab_id = request.cookies.get(settings.SESSION_COOKIE)
    device_id = request.cookies.get(settings.DEVICE_COOKIE)
    request.state.tab_id = tab_id or uuid.uuid4().hex
    request.state.device_id = device_id or uuid.uuid4().hex

    response = await call_next(request)

    if not tab_id:
        response.set_cookie(
            settings.SESSION_COOKIE, request.state.tab_id, httponly=True, samesite="lax"
        )
    if not device_id:
        response.set_cookie(
            settings.DEVICE_COOKIE,
            request.state.device_id,
            max_age=settings.DEVICE_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
        )
    return response


async def get_client_session(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    registry: SessionRegistry = Depends(get_registry),
) -> ClientSession:
    """
    Resolve the calling tab's ClientSession.

    Flow:
      1. Look up (or create) the session for the tab/device cookies.
      2. Start the auth controller on first use, so it is subscribed
         before any identity event of this request.
      3. Feed the bearer token to its identity service, which may emit
         SIGNED_IN / TOKEN_REFRESHED (or SIGNED_OUT once the last token
         expired) and start a hydration.
      4. Wait for in-flight hydrations so handlers see a settled snapshot.

    Raises:
        HTTPException(401): if a bearer token is present but invalid.
    """
    session = registry.get_or_create(request.state.tab_id, request.state.device_id)

    if not session.controller.started:
        await session.controller.start()

    try:
        session.identity.observe_token(credentials.credentials if credentials else None)
    except IdentityError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        )

    await session.controller.wait_until_settled()
    return session


class RouteBlocked(Exception):
    """Raised by `Guarded` when a view must not render."""

    def __init__(self, decision: GuardDecision):
        self.decision = decision
        super().__init__(decision.outcome.value)


class Guarded:
    """
    Route-guard dependency.

    Usage:

        @router.get("/admin", dependencies=[Depends(Guarded(require_admin=True))])

    or take the returned ClientSession as a parameter. On render, the
    current path is persisted to route memory as a background task.
    """

    def __init__(self, require_admin: bool = False):
        self.require_admin = require_admin

    async def __call__(
        self,
        request: Request,
        background_tasks: BackgroundTasks,
        session: ClientSession = Depends(get_client_session),
    ) -> ClientSession:
        decision = session.guard.evaluate(
            request.url.path,
            self.require_admin,
            session.snapshot,
            query=request.url.query,
        )
        if not decision.allowed:
            raise RouteBlocked(decision)
        if decision.remember:
            background_tasks.add_task(session.route_memory.remember, decision.remember)
        return session


LOADING_PAGE = "<p>Loading…</p>"


def unauthenticated_page(login_path: str) -> str:
    path = escape(login_path)
    return f'<p>Not authenticated. Please go to <a href="{path}">{path}</a> to sign in.</p>'


async def route_blocked_handler(request: Request, exc: RouteBlocked) -> Response:
    """Render a blocked guard decision. Only wrong-role access redirects."""
    decision = exc.decision
    if decision.outcome is GuardOutcome.REDIRECT:
        return RedirectResponse(decision.redirect_to or "/", status_code=status.HTTP_302_FOUND)
    if decision.outcome is GuardOutcome.WAITING:
        return HTMLResponse(LOADING_PAGE, headers={"Refresh": "1"})
    return HTMLResponse(
        unauthenticated_page(get_settings().LOGIN_PATH),
        status_code=status.HTTP_401_UNAUTHORIZED,
    )
