# groomdesk/routers/portal.py
from fastapi import APIRouter, Depends, Request

from groomdesk.core.dependencies import Guarded
from groomdesk.schemas.session import PortalPageRead
from groomdesk.services.client_session import ClientSession

# Catch-all tenant routes: include this router last.
router = APIRouter(tags=["Portal"])

require_session = Guarded()


def portal_read(
    session: ClientSession, request: Request, business_slug: str, page: str
) -> PortalPageRead:
    return PortalPageRead(
        business_slug=business_slug,
        page=page or "dashboard",
        active_business_id=session.active_business_id(request.url.path),
        impersonation=session.store.impersonation,
    )


@router.get("/{business_slug}", response_model=PortalPageRead)
def portal_index(
    business_slug: str,
    request: Request,
    session: ClientSession = Depends(require_session),
):
    """Tenant root; renders the dashboard like the nested index route."""
    return portal_read(session, request, business_slug, "dashboard")


@router.get("/{business_slug}/{page:path}", response_model=PortalPageRead)
def portal_page(
    business_slug: str,
    page: str,
    request: Request,
    session: ClientSession = Depends(require_session),
):
    """
    Tenant-scoped page (dashboard, appointments, customers, ...).

    The demo slug is public. Every other slug needs a signed-in tab; the
    data business id follows impersonation before the profile link.
    """
    return portal_read(session, request, business_slug, page)
