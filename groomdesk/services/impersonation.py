# groomdesk/services/impersonation.py
import logging
from typing import Protocol

from pydantic import BaseModel

from groomdesk.core.exceptions import ImpersonationError
from groomdesk.core.session_store import SessionStore
from groomdesk.models.profile import Profile
from groomdesk.services.auth_routing import dashboard_path

logger = logging.getLogger(__name__)


class TokenExchange(Protocol):
    async def redeem(self, token: str) -> str: ...


class BusinessNames(Protocol):
    async def get_name(self, business_id: str) -> str | None: ...


class ImpersonationOutcome(BaseModel):
    """
    Result of a redemption attempt.

    On failure `redirect_after` is the number of seconds the error stays
    on screen before navigating to `redirect_to`.
    """

    success: bool
    redirect_to: str
    business_id: str | None = None
    business_name: str | None = None
    error: str | None = None
    redirect_after: int = 0


class ImpersonationFlow:
    """
    Lets an administrator view the product as one tenant.

    Steps (redeem):
      1. exchange the one-time token for a business id (server-side,
         single use)
      2. look up the business display name
      3. record {is_impersonating, business id, business name} in the
         tab-scoped session store
      4. navigate to the business's slugged dashboard

    Any failure leaves the store untouched and sends the operator back
    to the admin dashboard after `failure_redirect_delay` seconds.

    This is a convenience layer; the server-side RPC is the security
    boundary.
    """

    def __init__(
        self,
        store: SessionStore,
        tokens: TokenExchange,
        businesses: BusinessNames,
        admin_path: str = "/admin",
        failure_redirect_delay: int = 3,
        demo_prefix: str = "/demo",
        demo_business_id: str | None = None,
    ):
        self.store = store
        self.tokens = tokens
        self.businesses = businesses
        self.admin_path = admin_path
        self.failure_redirect_delay = failure_redirect_delay
        self.demo_prefix = demo_prefix
        self.demo_business_id = demo_business_id

    async def redeem(self, token: str | None) -> ImpersonationOutcome:
        try:
            if not token:
                raise ImpersonationError("No token provided")

            business_id = await self._exchange(token)
            name = await self._business_name(business_id)
        except ImpersonationError as e:
            logger.warning("Impersonation failed: %s", e.message)
            return ImpersonationOutcome(
                success=False,
                redirect_to=self.admin_path,
                error=e.message,
                redirect_after=self.failure_redirect_delay,
            )

        self.store.set_impersonation(business_id, name)
        logger.info("Impersonating business %s (%s)", business_id, name)
        return ImpersonationOutcome(
            success=True,
            redirect_to=dashboard_path(name) or "/",
            business_id=business_id,
            business_name=name,
        )

    async def _exchange(self, token: str) -> str:
        try:
            return await self.tokens.redeem(token)
        except ImpersonationError:
            raise
        except Exception as e:
            logger.error("Impersonation token exchange error: %s", e)
            raise ImpersonationError("Failed to validate impersonation token") from e

    async def _business_name(self, business_id: str) -> str:
        try:
            name = await self.businesses.get_name(business_id)
        except Exception as e:
            logger.error("Error fetching business %s: %s", business_id, e)
            name = None
        if not name:
            raise ImpersonationError("Business not found")
        return name

    def exit(self) -> str:
        """Clear the impersonation record; returns the admin dashboard path."""
        record = self.store.impersonation
        self.store.clear_impersonation()
        if record.active:
            logger.info("Stopped impersonating business %s", record.business_id)
        return self.admin_path

    def resolve_business_id(self, profile: Profile | None, path: str | None = None) -> str | None:
        """
        The business id tenant-scoped data must be read for.

        Order:
          1. public demo path -> the demo business
          2. active impersonation -> the impersonated business
          3. the profile's own business link
        """
        if path is not None and self.demo_business_id and (
            path == self.demo_prefix or path.startswith(self.demo_prefix + "/")
        ):
            return self.demo_business_id

        record = self.store.impersonation
        if record.active and record.business_id:
            return record.business_id

        return profile.business_id if profile is not None else None
