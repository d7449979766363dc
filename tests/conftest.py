"""Shared fixtures: an in-memory fake of the SettleUp services."""

import asyncio
import itertools
import json
import re
from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest

from settleup.config import Settings
from settleup.models import Expense, RecordedTransfer
from settleup.netting import apply_transfers, compute_balances, compute_transfers
from settleup.session import SettleUpSession

BASE_URL = "http://settleup.test"


class FakeServices:
    """
    Membership, expense and settlement services kept in memory.

    Served through an httpx.MockTransport. Responses are built when the
    request arrives; `hold` can delay the next matching response so tests
    control the order in which answers come back.
    """

    def __init__(self):
        self.groups: dict[int, dict] = {}
        self.members: dict[int, list[dict]] = {}
        self.categories: dict[int, list[dict]] = {}
        self.expenses: dict[int, dict] = {}
        self.transfers: dict[int, dict] = {}

        self.requests: list[tuple[str, str]] = []
        self.gates: dict[tuple[str, str], asyncio.Event] = {}
        self.failures: dict[tuple[str, str], tuple[int, str]] = {}
        self.unreachable = False

        self._ids = itertools.count(1)
        self.transport = httpx.MockTransport(self.handle)

        self._routes = [
            ("GET", r"/api/membership/groups", self._list_groups),
            ("POST", r"/api/membership/groups", self._create_group),
            ("GET", r"/api/membership/groups/(\d+)", self._get_group),
            ("PUT", r"/api/membership/groups/(\d+)", self._update_group),
            ("DELETE", r"/api/membership/groups/(\d+)", self._delete_group),
            ("GET", r"/api/membership/groups/(\d+)/members", self._list_members),
            ("POST", r"/api/membership/groups/(\d+)/members", self._add_member),
            ("PUT", r"/api/membership/groups/(\d+)/members/(\d+)", self._update_member),
            ("DELETE", r"/api/membership/groups/(\d+)/members/(\d+)", self._remove_member),
            ("GET", r"/api/membership/groups/(\d+)/categories", self._list_categories),
            ("POST", r"/api/membership/groups/(\d+)/categories", self._add_category),
            (
                "PUT",
                r"/api/membership/groups/(\d+)/categories/(\d+)",
                self._update_category,
            ),
            (
                "DELETE",
                r"/api/membership/groups/(\d+)/categories/(\d+)",
                self._remove_category,
            ),
            ("GET", r"/api/expense/groups/(\d+)/expenses", self._list_expenses),
            ("POST", r"/api/expense/expenses", self._create_expense),
            ("GET", r"/api/expense/expenses/(\d+)", self._get_expense),
            ("PUT", r"/api/expense/expenses/(\d+)", self._update_expense),
            ("DELETE", r"/api/expense/expenses/(\d+)", self._delete_expense),
            ("POST", r"/api/settlement/settlements/compute", self._compute),
            ("POST", r"/api/settlement/transfers", self._record_transfer),
            ("GET", r"/api/settlement/groups/(\d+)/transfers", self._list_transfers),
            ("DELETE", r"/api/settlement/transfers/(\d+)", self._delete_transfer),
            ("GET", r"/api/\w+/actuator/health", self._health),
            ("GET", r"/api/\w+/v3/api-docs", self._api_docs),
        ]

    # ========================================================================
    # Test controls
    # ========================================================================

    def add_group(self, name: str, base_currency: str = "USD") -> int:
        group_id = next(self._ids)
        self.groups[group_id] = {
            "id": group_id,
            "name": name,
            "baseCurrency": base_currency,
        }
        self.members[group_id] = []
        self.categories[group_id] = []
        return group_id

    def add_member(self, group_id: int, email: str, role: str = "MEMBER") -> int:
        member_id = next(self._ids)
        self.members[group_id].append({"id": member_id, "email": email, "role": role})
        return member_id

    def add_category(self, group_id: int, name: str) -> int:
        category_id = next(self._ids)
        self.categories[group_id].append({"id": category_id, "name": name})
        return category_id

    def add_expense(
        self, group_id: int, payer_member_id: int, total: str, shares: dict[int, str]
    ) -> int:
        expense_id = next(self._ids)
        self.expenses[expense_id] = {
            "id": expense_id,
            "groupId": group_id,
            "payerMemberId": payer_member_id,
            "currency": self.groups[group_id]["baseCurrency"],
            "totalAmount": float(total),
            "splits": [
                {"memberId": member_id, "shareAmount": float(amount)}
                for member_id, amount in shares.items()
            ],
        }
        return expense_id

    def hold(self, method: str, path: str) -> asyncio.Event:
        """Delay the next response to method+path until the event is set."""
        gate = asyncio.Event()
        self.gates[(method, path)] = gate
        return gate

    def fail_next(self, method: str, path: str, status: int, body: str):
        """Answer the next request to method+path with an error."""
        self.failures[(method, path)] = (status, body)

    def count(self, method: str, path: str) -> int:
        """Number of requests seen for method+path."""
        return sum(1 for r in self.requests if r == (method, path))

    # ========================================================================
    # Transport
    # ========================================================================

    async def handle(self, request: httpx.Request) -> httpx.Response:
        method, path = request.method, request.url.path
        self.requests.append((method, path))

        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)

        response = self._respond(method, path, request)

        gate = self.gates.pop((method, path), None)
        if gate is not None:
            await gate.wait()

        return response

    def _respond(self, method: str, path: str, request: httpx.Request) -> httpx.Response:
        failure = self.failures.pop((method, path), None)
        if failure is not None:
            status, text = failure
            return httpx.Response(status, text=text)

        body = json.loads(request.content) if request.content else None
        for route_method, pattern, handler in self._routes:
            match = re.fullmatch(pattern, path)
            if route_method == method and match:
                status, payload = handler(body, *(int(g) for g in match.groups()))
                if payload is None:
                    return httpx.Response(status)
                if isinstance(payload, str):
                    return httpx.Response(status, text=payload)
                return httpx.Response(status, json=payload)

        return httpx.Response(404, text=f"No route for {method} {path}")

    # ========================================================================
    # Membership
    # ========================================================================

    def _list_groups(self, body):
        return 200, list(self.groups.values())

    def _create_group(self, body):
        group_id = self.add_group(body["name"], body["baseCurrency"])
        return 201, self.groups[group_id]

    def _get_group(self, body, group_id):
        if group_id not in self.groups:
            return 404, "Group not found"
        return 200, self.groups[group_id]

    def _update_group(self, body, group_id):
        if group_id not in self.groups:
            return 404, "Group not found"
        self.groups[group_id].update(
            name=body["name"], baseCurrency=body["baseCurrency"]
        )
        return 200, self.groups[group_id]

    def _delete_group(self, body, group_id):
        if self.groups.pop(group_id, None) is None:
            return 404, "Group not found"
        self.members.pop(group_id, None)
        self.categories.pop(group_id, None)
        for expense_id in [
            e["id"] for e in self.expenses.values() if e["groupId"] == group_id
        ]:
            del self.expenses[expense_id]
        return 204, None

    def _list_members(self, body, group_id):
        return 200, list(self.members.get(group_id, []))

    def _add_member(self, body, group_id):
        if group_id not in self.groups:
            return 404, "Group not found"
        self.add_member(group_id, body["email"], body.get("role", "MEMBER"))
        return 201, self.members[group_id][-1]

    def _update_member(self, body, group_id, member_id):
        for member in self.members.get(group_id, []):
            if member["id"] == member_id:
                member.update(email=body["email"], role=body.get("role", "MEMBER"))
                return 200, member
        return 404, "Member not found"

    def _remove_member(self, body, group_id, member_id):
        members = self.members.get(group_id, [])
        self.members[group_id] = [m for m in members if m["id"] != member_id]
        return 204, None

    def _list_categories(self, body, group_id):
        return 200, list(self.categories.get(group_id, []))

    def _add_category(self, body, group_id):
        if group_id not in self.groups:
            return 404, "Group not found"
        self.add_category(group_id, body["name"])
        return 201, self.categories[group_id][-1]

    def _update_category(self, body, group_id, category_id):
        for category in self.categories.get(group_id, []):
            if category["id"] == category_id:
                category["name"] = body["name"]
                return 200, category
        return 404, "Category not found"

    def _remove_category(self, body, group_id, category_id):
        categories = self.categories.get(group_id, [])
        self.categories[group_id] = [c for c in categories if c["id"] != category_id]
        return 204, None

    # ========================================================================
    # Expenses
    # ========================================================================

    def _check_expense(self, body) -> str | None:
        total = Decimal(str(body["totalAmount"]))
        shares = sum(
            (Decimal(str(s["shareAmount"])) for s in body["splits"]), Decimal("0")
        )
        if shares != total:
            return "Sum of splits must equal total amount"
        return None

    def _list_expenses(self, body, group_id):
        return 200, [e for e in self.expenses.values() if e["groupId"] == group_id]

    def _create_expense(self, body):
        error = self._check_expense(body)
        if error:
            return 400, error
        expense_id = next(self._ids)
        self.expenses[expense_id] = {"id": expense_id, **body}
        return 201, self.expenses[expense_id]

    def _get_expense(self, body, expense_id):
        if expense_id not in self.expenses:
            return 404, "Expense not found"
        return 200, self.expenses[expense_id]

    def _update_expense(self, body, expense_id):
        if expense_id not in self.expenses:
            return 404, "Expense not found"
        error = self._check_expense(body)
        if error:
            return 400, error
        self.expenses[expense_id] = {"id": expense_id, **body}
        return 200, self.expenses[expense_id]

    def _delete_expense(self, body, expense_id):
        self.expenses.pop(expense_id, None)
        return 204, None

    # ========================================================================
    # Settlement
    # ========================================================================

    def _compute(self, body):
        group_id = body["groupId"]
        expenses = [
            Expense.model_validate(e)
            for e in self.expenses.values()
            if e["groupId"] == group_id
        ]
        recorded = [
            RecordedTransfer.model_validate(t)
            for t in self.transfers.values()
            if t["groupId"] == group_id
        ]
        balances = apply_transfers(compute_balances(expenses), recorded)
        transfers = compute_transfers(balances)
        return 200, {"transfers": [t.to_wire() for t in transfers]}

    def _record_transfer(self, body):
        transfer_id = next(self._ids)
        self.transfers[transfer_id] = {"id": transfer_id, "note": None, **body}
        return 201, self.transfers[transfer_id]

    def _list_transfers(self, body, group_id):
        return 200, [t for t in self.transfers.values() if t["groupId"] == group_id]

    def _delete_transfer(self, body, transfer_id):
        self.transfers.pop(transfer_id, None)
        return 204, None

    # ========================================================================
    # Health
    # ========================================================================

    def _health(self, body):
        return 200, {"status": "UP"}

    def _api_docs(self, body):
        return 200, {"openapi": "3.0.1"}


async def settle_loop(rounds: int = 50):
    """Let pending tasks run up to their next blocking await."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def fake_services():
    """Create empty fake services."""
    return FakeServices()


@pytest.fixture
def mock_settings(tmp_path):
    """Create settings pointing at the fake services."""
    return Settings(api_base_url=BASE_URL, database_path=tmp_path / "settleup.db")


@pytest.fixture
async def session(mock_settings, fake_services):
    """Create a session wired to the fake services."""
    async with SettleUpSession(mock_settings, transport=fake_services.transport) as s:
        yield s


@pytest.fixture
def trip(fake_services):
    """Seed a Trip group with alice and bob."""
    group_id = fake_services.add_group("Trip", "USD")
    alice = fake_services.add_member(group_id, "alice@x.com")
    bob = fake_services.add_member(group_id, "bob@x.com")
    return SimpleNamespace(group_id=group_id, alice=alice, bob=bob)
