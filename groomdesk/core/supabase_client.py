# groomdesk/core/supabase_client.py
from functools import lru_cache
from supabase import create_client, Client

from groomdesk.core.config import get_settings


def supabase_session_client() -> Client:
    """
    Create a Supabase client with the anon/public key for ONE client session.

    Use cases:
      - reading profiles / businesses
      - calling the use_impersonation_token RPC

    Not cached: each session binds its own user's access token with
    `bind_access_token`, so RLS policies and auth.uid() see that user.
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)


def bind_access_token(client: Client, token: str | None) -> None:
    """
    Send `token` as the PostgREST bearer of `client`.

    None restores the anon key (signed out / expired).
    """
    client.postgrest.auth(token or get_settings().SUPABASE_KEY)


@lru_cache
def supabase_admin() -> Client:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - revoking a user's session on sign-out (Auth admin API)

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.

    Raises:
        RuntimeError: if SUPABASE_SERVICE_ROLE_KEY is not set.
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
