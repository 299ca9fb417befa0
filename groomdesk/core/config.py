# groomdesk/core/config.py
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used to revoke sessions on sign-out)
    """

    PROJECT_NAME: str = "GroomDesk"
    API_V1_STR: str = "/api/v1"

    # Supabase
    SUPABASE_URL: str
    SUPABASE_KEY: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Hydration: each fetch degrades to "absent" after this many seconds
    PROFILE_FETCH_TIMEOUT: float = 5.0
    BUSINESS_FETCH_TIMEOUT: float = 5.0

    # Seconds the operator sees a failed impersonation before going back
    IMPERSONATION_FAILURE_REDIRECT_DELAY: int = 3

    # Routing
    DEMO_PATH_PREFIX: str = "/demo"
    DEMO_BUSINESS_ID: str = "00000000-0000-0000-0000-000000000001"
    ADMIN_DASHBOARD_PATH: str = "/admin"
    LOGIN_PATH: str = "/login"

    # Client session cookies: tab-scoped (no max-age) and durable
    SESSION_COOKIE: str = "gd_tab"
    DEVICE_COOKIE: str = "gd_device"
    DEVICE_COOKIE_MAX_AGE: int = 60 * 60 * 24 * 365

    # In-process client sessions: LRU bound and idle eviction (seconds)
    MAX_CLIENT_SESSIONS: int = 10_000
    CLIENT_SESSION_IDLE_TTL: float = 12 * 60 * 60

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
