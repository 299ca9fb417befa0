# groomdesk/repositories/impersonation_repo.py
import asyncio

from postgrest.exceptions import APIError
from supabase import Client

from groomdesk.core.exceptions import ImpersonationError


class ImpersonationRepository:
    """
    Wrapper around the `use_impersonation_token` database function.

    The function is atomic and single-use server-side: it marks the token
    consumed and returns the target business id. A second call with the
    same token returns nothing (or errors), which surfaces here as an
    ImpersonationError.
    """

    RPC = "use_impersonation_token"

    def __init__(self, client: Client):
        self.client = client

    async def redeem(self, token: str) -> str:
        """
        Exchange a one-time token for the business id it grants.

        Raises:
            ImpersonationError: invalid, expired or already-used token.
        """
        try:
            result = await asyncio.to_thread(self._call, token)
        except APIError as e:
            raise ImpersonationError(e.message or "Invalid or expired token") from e

        if not result.data:
            raise ImpersonationError("Invalid token")
        return str(result.data)

    def _call(self, token: str):
        return self.client.rpc(self.RPC, {"impersonation_token": token}).execute()
