# groomdesk/routers/session.py
from fastapi import APIRouter, Depends

from groomdesk.core.dependencies import get_client_session
from groomdesk.schemas.session import (
    DemoModeUpdate,
    LanguageUpdate,
    RouteRead,
    SessionRead,
)
from groomdesk.services.auth_routing import (
    default_route,
    get_auth_context,
    set_demo_mode,
)
from groomdesk.services.client_session import ClientSession

router = APIRouter(prefix="/session", tags=["Session"])


def session_read(session: ClientSession) -> SessionRead:
    """Map a ClientSession to its API representation."""
    snapshot = session.snapshot
    record = session.store.impersonation
    return SessionRead(
        user=snapshot.identity,
        profile=snapshot.profile,
        business=snapshot.business,
        is_admin=snapshot.is_admin,
        loading=snapshot.loading,
        is_impersonating=record.active,
        impersonating_business_name=record.business_name,
        active_business_id=session.active_business_id(),
        auth_context=get_auth_context(session.store),
        language=session.store.language,
    )


@router.get("", response_model=SessionRead)
def read_session(session: ClientSession = Depends(get_client_session)):
    """
    Return the calling tab's auth snapshot.

    Auth:
      - Optional. Anonymous tabs get an empty snapshot.
    """
    return session_read(session)


@router.post("/refresh", response_model=SessionRead)
async def refresh_session(session: ClientSession = Depends(get_client_session)):
    """Re-hydrate the snapshot (e.g. after the profile was edited)."""
    await session.controller.hydrate()
    return session_read(session)


@router.post("/sign-out", response_model=SessionRead)
async def sign_out(session: ClientSession = Depends(get_client_session)):
    """
    Sign the tab out.

    Clears impersonation, routing flags and route memory; revokes the
    Supabase session when a service role key is configured.
    """
    await session.sign_out()
    return session_read(session)


@router.get("/default-route", response_model=RouteRead)
def read_default_route(session: ClientSession = Depends(get_client_session)):
    """Landing route for this session: /admin, demo, tenant dashboard or /login."""
    snapshot = session.snapshot
    return RouteRead(path=default_route(session.store, snapshot.is_admin, snapshot.business))


@router.get("/last-route", response_model=RouteRead)
def read_last_route(session: ClientSession = Depends(get_client_session)):
    """
    Route to restore after a reload.

    Only authenticated sessions get one; falls back to the default route.
    """
    snapshot = session.snapshot
    if not snapshot.is_authenticated:
        return RouteRead(path=None)
    restored = session.route_memory.restore()
    return RouteRead(
        path=restored or default_route(session.store, snapshot.is_admin, snapshot.business)
    )


@router.put("/demo-mode", response_model=SessionRead)
def update_demo_mode(
    payload: DemoModeUpdate,
    session: ClientSession = Depends(get_client_session),
):
    """Toggle the public demo tenant for this tab."""
    set_demo_mode(session.store, payload.enabled)
    return session_read(session)


@router.put("/language", response_model=SessionRead)
def update_language(
    payload: LanguageUpdate,
    session: ClientSession = Depends(get_client_session),
):
    """Persist the display language for every tab of this browser."""
    session.store.set_language(payload.language)
    return session_read(session)
