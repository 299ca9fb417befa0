# groomdesk/services/auth_routing.py
"""
Session-scoped routing flags: coarse auth context, demo mode and the
cached tenant slug, plus the default landing route derived from them.
"""

import re

from groomdesk.core.session_store import (
    AUTH_CONTEXT,
    BUSINESS_SLUG,
    DEMO_MODE,
    SessionStore,
)
from groomdesk.models.business import Business
from groomdesk.models.session import AuthContextKind

ADMIN_HOME = "/admin"
DEMO_HOME = "/demo/dashboard"
LOGIN_PATH = "/login"


def slugify(value: str) -> str:
    """
    Turn a business name into its URL slug.

    "Acme Grooming"   -> "acme-grooming"
    "Paws 'n' Claws!" -> "paws-n-claws"
    """
    slug = value.strip().lower()
    slug = re.sub(r"['\"]", "", slug)
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    return slug.strip("-")


def dashboard_path(business_name: str) -> str | None:
    """Slugged dashboard path for a business, or None if the name has no slug."""
    slug = slugify(business_name)
    if not slug:
        return None
    return f"/{slug}/dashboard"


# ----- Auth context -----


def set_auth_context(store: SessionStore, kind: AuthContextKind) -> None:
    store.tab.set(AUTH_CONTEXT, kind.value)


def get_auth_context(store: SessionStore) -> AuthContextKind:
    """Absent or unrecognised values read as NONE."""
    try:
        return AuthContextKind(store.tab.get(AUTH_CONTEXT, AuthContextKind.NONE.value))
    except ValueError:
        return AuthContextKind.NONE


def clear_auth_context(store: SessionStore) -> None:
    store.tab.clear(AUTH_CONTEXT, DEMO_MODE, BUSINESS_SLUG)


# ----- Business slug -----


def set_business_slug(store: SessionStore, business: Business | None) -> None:
    """Cache the tenant slug for routing; drops a stale one without a named business."""
    if business is None or not business.name:
        store.tab.clear(BUSINESS_SLUG)
        return
    store.tab.set(BUSINESS_SLUG, slugify(business.name))


def get_business_slug(store: SessionStore) -> str | None:
    return store.tab.get(BUSINESS_SLUG)


# ----- Demo mode -----


def set_demo_mode(store: SessionStore, enabled: bool) -> None:
    if enabled:
        store.tab.set(DEMO_MODE, "true")
        set_auth_context(store, AuthContextKind.DEMO)
        return

    store.tab.clear(DEMO_MODE)
    if get_auth_context(store) is AuthContextKind.DEMO:
        set_auth_context(store, AuthContextKind.NONE)


def is_demo_mode(store: SessionStore) -> bool:
    return store.tab.get(DEMO_MODE) == "true"


def default_route(store: SessionStore, is_admin: bool, business: Business | None) -> str:
    """Where a freshly signed-in (or restored) session should land."""
    if is_admin:
        return ADMIN_HOME
    if is_demo_mode(store):
        return DEMO_HOME
    slug = get_business_slug(store)
    if not slug and business is not None and business.name:
        slug = slugify(business.name)
    if slug:
        return f"/{slug}/dashboard"
    return LOGIN_PATH
