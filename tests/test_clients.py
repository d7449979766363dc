"""Tests for the HTTP clients and their error taxonomy."""

import json
from decimal import Decimal

import httpx
import pytest

from settleup.clients.expense import ExpenseClient
from settleup.clients.membership import MembershipClient
from settleup.clients.settlement import SettlementClient
from settleup.exceptions import (
    HTTPStatusError,
    InvalidResponseError,
    TransportFailureError,
)
from settleup.models import ExpenseRequest, Group, Split

from conftest import BASE_URL


def make_client(cls, handler):
    return cls(BASE_URL, transport=httpx.MockTransport(handler))


class TestErrorTaxonomy:
    """Test how failures surface."""

    async def test_non_2xx_surfaces_status_and_body(self):
        """The message is exactly 'HTTP <status>: <body>'."""
        client = make_client(
            MembershipClient, lambda request: httpx.Response(404, text="Group not found")
        )

        with pytest.raises(HTTPStatusError) as exc_info:
            await client.get_group(42)

        assert str(exc_info.value) == "HTTP 404: Group not found"
        assert exc_info.value.status_code == 404
        assert exc_info.value.body == "Group not found"
        await client.aclose()

    async def test_transport_failure(self):
        """Network errors carry the underlying message."""

        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        client = make_client(MembershipClient, handler)

        with pytest.raises(TransportFailureError, match="Connection refused"):
            await client.list_groups()
        await client.aclose()

    async def test_malformed_body(self):
        """A 2xx body of the wrong shape is an InvalidResponseError."""
        client = make_client(
            MembershipClient, lambda request: httpx.Response(200, json=[{"id": "x"}])
        )

        with pytest.raises(InvalidResponseError):
            await client.list_groups()
        await client.aclose()

    async def test_plan_with_self_transfer_rejected(self):
        """A plan violating the transfer invariants fails to parse."""
        plan = {"transfers": [{"fromMemberId": 1, "toMemberId": 1, "amount": 5}]}
        client = make_client(
            SettlementClient, lambda request: httpx.Response(200, json=plan)
        )

        with pytest.raises(InvalidResponseError):
            await client.compute_settlement(1, "USD")
        await client.aclose()

    async def test_server_rejects_unbalanced_expense(self, fake_services, trip):
        """The service is the second line of defence for the split sum."""
        async with ExpenseClient(BASE_URL, transport=fake_services.transport) as client:
            request = ExpenseRequest(
                group_id=trip.group_id,
                payer_member_id=trip.alice,
                currency="USD",
                total_amount="100",
                splits=[Split(member_id=trip.alice, share_amount="10")],
            )

            with pytest.raises(HTTPStatusError, match="HTTP 400: Sum of splits"):
                await client.create_expense(request)


class TestRequests:
    """Test request construction."""

    async def test_prefix_and_camel_case_body(self):
        """Requests go to base URL + service prefix with camelCase JSON."""
        seen = []

        def handler(request):
            seen.append(request)
            body = json.loads(request.content)
            return httpx.Response(201, json={"id": 9, **body})

        async with make_client(ExpenseClient, handler) as client:
            expense = await client.create_expense(
                ExpenseRequest(
                    group_id=1,
                    payer_member_id=2,
                    currency="USD",
                    total_amount="19.99",
                    splits=[Split(member_id=2, share_amount="19.99")],
                )
            )

        assert str(seen[0].url) == f"{BASE_URL}/api/expense/expenses"
        assert json.loads(seen[0].content) == {
            "groupId": 1,
            "payerMemberId": 2,
            "currency": "USD",
            "totalAmount": 19.99,
            "splits": [{"memberId": 2, "shareAmount": 19.99}],
        }
        assert expense.id == 9
        assert expense.total_amount == Decimal("19.99")

    async def test_custom_prefix(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        client = MembershipClient(
            BASE_URL + "/", "/membership/", transport=httpx.MockTransport(handler)
        )
        await client.list_groups()
        await client.aclose()

        assert str(seen[0].url) == f"{BASE_URL}/membership/groups"

    async def test_no_content(self):
        """204 responses return None."""
        client = make_client(MembershipClient, lambda request: httpx.Response(204))

        assert await client.delete_group(1) is None
        await client.aclose()

    async def test_typed_response(self, fake_services, trip):
        async with MembershipClient(BASE_URL, transport=fake_services.transport) as client:
            groups = await client.list_groups()

        assert groups == [Group(id=trip.group_id, name="Trip", base_currency="USD")]

    async def test_get_expense(self, fake_services, trip):
        expense_id = fake_services.add_expense(
            trip.group_id, trip.alice, "10", {trip.bob: "10"}
        )

        async with ExpenseClient(BASE_URL, transport=fake_services.transport) as client:
            expense = await client.get_expense(expense_id)

        assert expense.payer_member_id == trip.alice
        assert expense.splits[0].share_amount == Decimal("10.00")

    async def test_delete_transfer(self, fake_services, trip):
        async with SettlementClient(BASE_URL, transport=fake_services.transport) as client:
            recorded = await client.record_transfer(
                trip.group_id, trip.bob, trip.alice, Decimal("5")
            )
            await client.delete_transfer(recorded.id)

            assert await client.list_transfers(trip.group_id) == []


class TestProbe:
    """Test endpoint probes."""

    async def test_probe_reports_status(self):
        client = make_client(MembershipClient, lambda request: httpx.Response(503))

        check = await client.probe("membership", "/actuator/health")

        assert not check.ok
        assert check.error == "503"
        assert check.url == f"{BASE_URL}/api/membership/actuator/health"
        await client.aclose()
