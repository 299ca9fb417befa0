# groomdesk/models/business.py
from datetime import datetime
from typing import Literal

from sqlmodel import SQLModel, Field

SubscriptionTier = Literal["basic", "pro", "enterprise"]
SubscriptionStatus = Literal["active", "canceled", "past_due", "trialing"]


class Business(SQLModel):
    """
    A tenant (grooming business) as stored in public.businesses.

    Lifecycle:
      - created by the signup / checkout flow (outside this core)
      - edited from the tenant's settings page
      - never deleted here
    """

    id: str
    name: str
    email: str

    # Contact info
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    website: str | None = None
    logo_url: str | None = None

    # Subscription / billing linkage
    subscription_tier: SubscriptionTier = "basic"
    subscription_status: SubscriptionStatus = "trialing"
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    trial_ends_at: datetime | None = None
    subscription_ends_at: datetime | None = None

    onboarding_completed: bool = Field(default=False)

    created_at: datetime | None = None
    updated_at: datetime | None = None
