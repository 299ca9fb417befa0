"""Tests for the auth state controller (hydration, events, generations)."""

import asyncio

import pytest

from conftest import (
    ADMIN_ID,
    BIZ_ID,
    OWNER_BIZ_ID,
    OWNER_ID,
    FakeIdentityService,
    FakeProfiles,
    make_token,
)
from groomdesk.models.profile import Identity, Profile
from groomdesk.models.session import AuthEvent
from groomdesk.services.auth_state import (
    AuthSnapshot,
    AuthStateController,
    ControllerState,
)


def make_controller(store, profiles, businesses, identity=None, timeout=0.5):
    service = FakeIdentityService(identity)
    controller = AuthStateController(
        service,
        profiles,
        businesses,
        store,
        profile_timeout=timeout,
        business_timeout=timeout,
    )
    return controller, service


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class TestAuthSnapshot:
    def test_is_admin_follows_profile_flag(self, admin_profile, owner_profile):
        assert AuthSnapshot(profile=admin_profile).is_admin is True
        assert AuthSnapshot(profile=owner_profile).is_admin is False
        assert AuthSnapshot().is_admin is False

    def test_snapshot_is_immutable(self):
        snapshot = AuthSnapshot()
        with pytest.raises(Exception):
            snapshot.loading = True


# ---------------------------------------------------------------------------
# hydrate()
# ---------------------------------------------------------------------------


class TestHydrate:
    def test_initial_snapshot_is_loading(self, store, profiles, businesses):
        controller, _ = make_controller(store, profiles, businesses)

        assert controller.state is ControllerState.UNINITIALIZED
        assert controller.snapshot.loading is True

    @pytest.mark.asyncio
    async def test_anonymous_when_no_session(self, store, profiles, businesses):
        controller, _ = make_controller(store, profiles, businesses)

        snapshot = await controller.start()

        assert snapshot == AuthSnapshot()
        assert controller.state is ControllerState.READY_ANONYMOUS
        assert profiles.calls == []

    @pytest.mark.asyncio
    async def test_full_hydration(self, store, profiles, businesses, identity, owner_business):
        controller, _ = make_controller(store, profiles, businesses, identity)

        snapshot = await controller.start()

        assert snapshot.identity == identity
        assert snapshot.profile.business_id == OWNER_BIZ_ID
        assert snapshot.business == owner_business
        assert snapshot.is_admin is False
        assert snapshot.loading is False
        assert controller.state is ControllerState.READY_AUTHENTICATED

    @pytest.mark.asyncio
    async def test_identity_override_skips_session_query(
        self, store, profiles, businesses, admin_identity
    ):
        controller, service = make_controller(store, profiles, businesses)
        service.session_error = RuntimeError("should not be called")

        snapshot = await controller.hydrate(admin_identity)

        assert snapshot.identity == admin_identity
        assert snapshot.is_admin is True
        assert snapshot.business is None

    @pytest.mark.asyncio
    async def test_session_query_failure_is_anonymous(self, store, profiles, businesses):
        controller, service = make_controller(store, profiles, businesses)
        service.session_error = ConnectionError("auth down")

        snapshot = await controller.hydrate()

        assert snapshot == AuthSnapshot()

    @pytest.mark.asyncio
    async def test_profile_timeout_skips_business_fetch(
        self, store, profiles, businesses, identity
    ):
        """Profile fetch times out: identity only, business never attempted."""
        profiles.delays[OWNER_ID] = 0.3
        controller, _ = make_controller(store, profiles, businesses, identity, timeout=0.05)

        snapshot = await controller.start()

        assert snapshot.identity == identity
        assert snapshot.profile is None
        assert snapshot.business is None
        assert snapshot.is_admin is False
        assert snapshot.loading is False
        assert businesses.calls == []

    @pytest.mark.asyncio
    async def test_profile_error_degrades_to_none(self, store, profiles, businesses, identity):
        profiles.errors[OWNER_ID] = RuntimeError("PGRST116")
        controller, _ = make_controller(store, profiles, businesses, identity)

        snapshot = await controller.start()

        assert snapshot.identity == identity
        assert snapshot.profile is None
        assert snapshot.loading is False

    @pytest.mark.asyncio
    async def test_business_timeout_keeps_profile(self, store, profiles, businesses, identity):
        businesses.delays[OWNER_BIZ_ID] = 0.3
        controller, _ = make_controller(store, profiles, businesses, identity, timeout=0.05)

        snapshot = await controller.start()

        assert snapshot.profile is not None
        assert snapshot.business is None

    @pytest.mark.asyncio
    async def test_profile_without_business_link(self, store, businesses):
        unprovisioned = Profile(id="u-1", email="new@signup.test")
        controller, _ = make_controller(
            store,
            FakeProfiles({"u-1": unprovisioned}),
            businesses,
            Identity(id="u-1", email="new@signup.test"),
        )

        snapshot = await controller.start()

        assert snapshot.profile == unprovisioned
        assert snapshot.business is None
        assert businesses.calls == []

    @pytest.mark.asyncio
    async def test_missing_profile(self, store, profiles, businesses):
        controller, _ = make_controller(
            store, profiles, businesses, Identity(id="ghost", email=None)
        )

        snapshot = await controller.start()

        assert snapshot.identity.id == "ghost"
        assert snapshot.profile is None

    @pytest.mark.asyncio
    async def test_aborted_fetch_still_clears_loading(self, store, profiles, businesses, identity):
        profiles.errors[OWNER_ID] = asyncio.CancelledError()
        controller, _ = make_controller(store, profiles, businesses, identity)

        snapshot = await controller.hydrate()

        assert snapshot.loading is False
        assert snapshot.identity == identity
        assert snapshot.profile is None

    @pytest.mark.asyncio
    async def test_subscribers_see_loading_then_ready(
        self, store, profiles, businesses, identity
    ):
        controller, _ = make_controller(store, profiles, businesses, identity)
        seen: list[bool] = []
        controller.subscribe(lambda s: seen.append(s.loading))

        await controller.hydrate()

        assert seen == [True, False]


# ---------------------------------------------------------------------------
# Identity events
# ---------------------------------------------------------------------------


class TestIdentityEvents:
    @pytest.mark.asyncio
    async def test_signed_in_triggers_hydration(self, store, profiles, businesses, identity):
        controller, service = make_controller(store, profiles, businesses)
        await controller.start()

        service.observe_token(make_token(OWNER_ID, "owner@acme.test"))
        assert controller.snapshot.loading is True

        snapshot = await controller.wait_until_settled()

        assert snapshot.identity == identity
        assert snapshot.business is not None

    @pytest.mark.asyncio
    async def test_signed_out_resets_without_round_trip(
        self, store, profiles, businesses, identity
    ):
        controller, _ = make_controller(store, profiles, businesses, identity)
        await controller.start()
        store.set_impersonation(BIZ_ID, "Acme Grooming")
        calls_before = len(profiles.calls)

        controller.on_identity_event(AuthEvent.SIGNED_OUT, None)

        assert controller.snapshot == AuthSnapshot()
        assert controller.state is ControllerState.READY_ANONYMOUS
        assert store.impersonation.active is False
        assert len(profiles.calls) == calls_before

    @pytest.mark.asyncio
    async def test_last_event_wins_over_slow_earlier_fetch(
        self, store, profiles, businesses, identity, admin_identity
    ):
        """Snapshot follows the last event, whatever order fetches finish in."""
        profiles.delays[OWNER_ID] = 0.2
        controller, _ = make_controller(store, profiles, businesses)
        await controller.start()

        controller.on_identity_event(AuthEvent.SIGNED_IN, identity)
        controller.on_identity_event(AuthEvent.SIGNED_IN, admin_identity)
        snapshot = await controller.wait_until_settled()

        assert snapshot.identity == admin_identity
        assert snapshot.profile.id == ADMIN_ID
        assert snapshot.loading is False

    @pytest.mark.asyncio
    async def test_sign_out_supersedes_in_flight_hydration(
        self, store, profiles, businesses, identity
    ):
        profiles.delays[OWNER_ID] = 0.1
        controller, _ = make_controller(store, profiles, businesses)
        await controller.start()

        controller.on_identity_event(AuthEvent.SIGNED_IN, identity)
        await asyncio.sleep(0)
        controller.on_identity_event(AuthEvent.SIGNED_OUT, None)
        snapshot = await controller.wait_until_settled()

        assert snapshot == AuthSnapshot()

    @pytest.mark.asyncio
    async def test_token_refresh_rehydrates(self, store, profiles, businesses, identity):
        controller, _ = make_controller(store, profiles, businesses, identity)
        await controller.start()
        generation = controller.generation

        controller.on_identity_event(AuthEvent.TOKEN_REFRESHED, identity)
        await controller.wait_until_settled()

        assert controller.generation == generation + 1
        assert profiles.calls.count(OWNER_ID) == 2

    @pytest.mark.asyncio
    async def test_dispose_releases_subscriptions(self, store, profiles, businesses, identity):
        controller, service = make_controller(store, profiles, businesses)
        await controller.start()
        seen: list[AuthSnapshot] = []
        controller.subscribe(seen.append)

        controller.dispose()
        controller.on_identity_event(AuthEvent.SIGNED_IN, identity)

        assert controller.state is ControllerState.DISPOSED
        assert len(service._events) == 0
        assert seen == []

    @pytest.mark.asyncio
    async def test_impersonation_change_republishes_snapshot(
        self, store, profiles, businesses, identity
    ):
        controller, _ = make_controller(store, profiles, businesses, identity)
        await controller.start()
        seen: list[AuthSnapshot] = []
        controller.subscribe(seen.append)

        store.set_impersonation(BIZ_ID, "Acme Grooming")

        assert seen
        assert controller.is_impersonating is True
        assert controller.impersonating_business_name == "Acme Grooming"


# ---------------------------------------------------------------------------
# Concurrent callers
# ---------------------------------------------------------------------------


class TestConcurrentStart:
    @pytest.mark.asyncio
    async def test_second_caller_waits_for_initial_hydration(
        self, store, profiles, businesses, identity
    ):
        profiles.delays[OWNER_ID] = 0.05
        controller, _ = make_controller(store, profiles, businesses, identity)

        first = asyncio.create_task(controller.start())
        await asyncio.sleep(0)
        assert controller.started
        assert controller.snapshot.loading is True

        snapshot = await controller.wait_until_settled()

        assert snapshot.loading is False
        assert snapshot.profile.id == OWNER_ID
        assert (await first) == snapshot

