# groomdesk/repositories/profile_repo.py
import asyncio

from supabase import Client

from groomdesk.models.profile import Profile


class ProfileRepository:
    """
    Data access layer for public.profiles.

    Responsibilities:
      - Pure Supabase reads (no FastAPI, no timeouts, no fallbacks)
      - Errors from PostgREST / the transport propagate to the caller

    The supabase client is synchronous; queries run in a worker thread so
    callers can bound them with asyncio timeouts.
    """

    TABLE = "profiles"

    def __init__(self, client: Client):
        self.client = client

    async def get_by_id(self, profile_id: str) -> Profile | None:
        """Return the Profile whose id matches the auth identity, or None."""
        result = await asyncio.to_thread(self._select_by_id, profile_id)
        if result.data:
            return Profile.model_validate(result.data[0])
        return None

    def _select_by_id(self, profile_id: str):
        return (
            self.client.table(self.TABLE)
            .select("*")
            .eq("id", profile_id)
            .limit(1)
            .execute()
        )
