"""End-to-end tests through a session against the fake services."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from settleup.exceptions import InvalidResponseError, NoActiveGroupError, SettleUpError
from settleup.models import Split, Transfer
from settleup.session import SettleUpSession
from settleup.settlement import SettlementStatus


class TestTripScenario:
    """Group, members, one expense, one transfer."""

    async def test_trip(self, session):
        group = await session.groups.create("Trip", "USD")
        alice = await session.members.add(group.id, "alice@x.com")
        bob = await session.members.add(group.id, "bob@x.com")

        await session.expenses.create(
            group.id,
            alice.id,
            "USD",
            "100",
            [
                Split(member_id=alice.id, share_amount="50"),
                Split(member_id=bob.id, share_amount="50"),
            ],
        )
        plan = await session.compute_settlement()

        assert plan.transfers == [
            Transfer(from_member_id=bob.id, to_member_id=alice.id, amount="50")
        ]
        assert session.settlement.status == SettlementStatus.READY

    async def test_trip_through_draft(self, session):
        group = await session.groups.create("Trip", "USD")
        alice = await session.members.add(group.id, "alice@x.com")
        bob = await session.members.add(group.id, "bob@x.com")

        session.expenses.set_total(100)
        session.expenses.split_evenly()
        await session.expenses.submit_draft(group.id)
        plan = await session.compute_settlement()

        [transfer] = plan.transfers
        assert (transfer.from_member_id, transfer.to_member_id) == (bob.id, alice.id)
        assert transfer.amount == Decimal("50.00")


class TestClose:
    """Test releasing the HTTP clients."""

    async def test_all_clients_closed_when_one_fails(self, mock_settings, fake_services):
        session = SettleUpSession(mock_settings, transport=fake_services.transport)

        with patch.object(
            session.membership_client,
            "aclose",
            AsyncMock(side_effect=RuntimeError("close failed")),
        ):
            with pytest.raises(RuntimeError, match="close failed"):
                await session.aclose()

        assert session.expense_client.client.is_closed
        assert session.settlement_client.client.is_closed
        await session.membership_client.aclose()


class TestOpen:
    """Test choosing the group a session starts with."""

    async def test_preferred_group(self, session, fake_services, trip):
        other = fake_services.add_group("Flat")

        group = await session.open(other)

        assert group.id == other
        assert session.store.active_group_id == other

    async def test_missing_preferred_group_falls_back_to_first(self, session, trip):
        group = await session.open(12345)

        assert group.id == trip.group_id

    async def test_no_groups(self, session):
        assert await session.open() is None
        assert session.active_group is None

        with pytest.raises(NoActiveGroupError):
            session.require_active_group()
        with pytest.raises(NoActiveGroupError):
            await session.compute_settlement()


class TestCheckPlan:
    """Test verifying a plan against loaded expenses."""

    @pytest.fixture
    async def opened(self, session, fake_services, trip):
        fake_services.add_expense(
            trip.group_id, trip.alice, "100", {trip.alice: "50", trip.bob: "50"}
        )
        await session.open(trip.group_id)
        return session

    async def test_fresh_plan_checks_out(self, opened):
        await opened.compute_settlement()

        await opened.check_plan()

    async def test_without_plan(self, opened):
        with pytest.raises(SettleUpError, match="No settlement plan"):
            await opened.check_plan()

    async def test_outdated_plan_detected(self, opened, trip):
        """A plan computed before a recorded payment no longer settles."""
        await opened.compute_settlement()
        await opened.settlement.record_transfer(trip.group_id, trip.bob, trip.alice, 50)

        with pytest.raises(InvalidResponseError, match="does not match balances"):
            await opened.check_plan()

        plan = await opened.compute_settlement()
        assert plan.transfers == []
        await opened.check_plan()
