# groomdesk/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from groomdesk.core.config import get_settings
from groomdesk.core.dependencies import (
    RouteBlocked,
    reset_registry,
    route_blocked_handler,
    session_cookies,
)

# Routers
from groomdesk.routers.session import router as session_router
from groomdesk.routers.admin import router as admin_router
from groomdesk.routers.portal import router as portal_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Log the Supabase project in use (clients are created lazily).

    Shutdown:
      - Dispose every client session (auth subscriptions, store channels).
    """
    logger.info("🔄 Startup: GroomDesk auth core using %s", settings.SUPABASE_URL)
    yield
    reset_registry()
    logger.info("✅ Shutdown: client sessions released.")


app = FastAPI(
    title=settings.PROJECT_NAME or "GroomDesk",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(session_cookies)
app.add_exception_handler(RouteBlocked, route_blocked_handler)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "groomdesk"}


# Versioned API prefix, e.g. /api/v1
app.include_router(session_router, prefix=settings.API_V1_STR)
app.include_router(admin_router)
# Tenant catch-all must come last
app.include_router(portal_router)
