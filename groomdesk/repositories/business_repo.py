# groomdesk/repositories/business_repo.py
import asyncio

from supabase import Client

from groomdesk.models.business import Business


class BusinessRepository:
    """
    Data access layer for public.businesses (tenants).

    Read-only from the auth core's point of view.
    """

    TABLE = "businesses"

    def __init__(self, client: Client):
        self.client = client

    async def get_by_id(self, business_id: str) -> Business | None:
        """Return the full Business row, or None if not found."""
        rows = await asyncio.to_thread(self._select, business_id, "*")
        if rows:
            return Business.model_validate(rows[0])
        return None

    async def get_name(self, business_id: str) -> str | None:
        """Return only the display name (used for impersonation banners)."""
        rows = await asyncio.to_thread(self._select, business_id, "id, name")
        if rows:
            return rows[0].get("name")
        return None

    def _select(self, business_id: str, columns: str) -> list[dict]:
        result = (
            self.client.table(self.TABLE)
            .select(columns)
            .eq("id", business_id)
            .limit(1)
            .execute()
        )
        return result.data or []
