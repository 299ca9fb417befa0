# groomdesk/routers/admin.py
from html import escape

from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse, RedirectResponse

from groomdesk.core.dependencies import Guarded, get_client_session
from groomdesk.schemas.session import AdminPageRead
from groomdesk.services.client_session import ClientSession

router = APIRouter(prefix="/admin", tags=["Admin"])

require_admin = Guarded(require_admin=True)


def _failure_page(error: str, redirect_to: str) -> str:
    return (
        "<h1>Impersonation Failed</h1>"
        f"<p>{escape(error)}</p>"
        f'<p>Redirecting to <a href="{escape(redirect_to)}">admin dashboard</a>...</p>'
    )


# -------- Impersonation --------


@router.get("/impersonate/{token}")
async def redeem_impersonation_token(
    token: str,
    session: ClientSession = Depends(get_client_session),
):
    """
    Redeem a one-time impersonation token.

    Success:
      - 302 to the impersonated business's dashboard.
    Failure (invalid / expired / used token, unknown business):
      - HTML error page that returns to /admin after a short delay.
    """
    outcome = await session.impersonation.redeem(token)
    if outcome.success:
        return RedirectResponse(outcome.redirect_to, status_code=status.HTTP_302_FOUND)

    return HTMLResponse(
        _failure_page(outcome.error or "Invalid or expired token", outcome.redirect_to),
        status_code=status.HTTP_400_BAD_REQUEST,
        headers={"Refresh": f"{outcome.redirect_after}; url={outcome.redirect_to}"},
    )


@router.post("/impersonation/exit")
def exit_impersonation(session: ClientSession = Depends(get_client_session)):
    """Leave client view (banner button) and go back to the admin dashboard."""
    target = session.impersonation.exit()
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)


# -------- Admin portal (admin only) --------


@router.get("", response_model=AdminPageRead)
def admin_dashboard(session: ClientSession = Depends(require_admin)):
    """Administrator dashboard."""
    return _admin_page(session, "dashboard")


@router.get("/{page:path}", response_model=AdminPageRead)
def admin_page(page: str, session: ClientSession = Depends(require_admin)):
    """Admin-only sub-pages (business detail, etc.)."""
    return _admin_page(session, page)


def _admin_page(session: ClientSession, page: str) -> AdminPageRead:
    identity = session.snapshot.identity
    return AdminPageRead(
        page=page,
        admin_email=identity.email if identity else None,
        impersonation=session.store.impersonation,
    )
