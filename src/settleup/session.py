"""Session: wires the clients, the active group store and the components.

This module is the composition root. Everything scoped to a group subscribes
to the store here:

    GroupDirectory ── ActiveGroupStore ─┬─ MemberRoster ── ExpenseLedger (draft)
                                        ├─ CategoryRegistry
                                        ├─ ExpenseLedger (expenses)
                                        └─ SettlementRequester
"""

import logging

import httpx

from .clients.expense import ExpenseClient
from .clients.membership import MembershipClient
from .clients.settlement import SettlementClient
from .config import Settings
from .directory import GroupDirectory
from .exceptions import NoActiveGroupError, SettleUpError
from .ledger import ExpenseLedger
from .models import Group, SettlementPlan
from .netting import apply_transfers, compute_balances, verify_plan
from .roster import CategoryRegistry, MemberRoster
from .settlement import SettlementRequester
from .store import ActiveGroupStore

logger = logging.getLogger(__name__)


class SettleUpSession:
    """All state of one client session."""

    def __init__(
        self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ):
        """Initialize clients and components."""
        self.settings = settings

        self.membership_client = MembershipClient(
            settings.api_base_url,
            settings.membership_prefix,
            timeout=settings.request_timeout,
            transport=transport,
        )
        self.expense_client = ExpenseClient(
            settings.api_base_url,
            settings.expense_prefix,
            timeout=settings.request_timeout,
            transport=transport,
        )
        self.settlement_client = SettlementClient(
            settings.api_base_url,
            settings.settlement_prefix,
            timeout=settings.request_timeout,
            transport=transport,
        )

        self.store = ActiveGroupStore()
        self.groups = GroupDirectory(self.store, self.membership_client)
        self.members = MemberRoster(self.store, self.membership_client)
        self.categories = CategoryRegistry(self.store, self.membership_client)
        self.expenses = ExpenseLedger(
            self.store,
            self.expense_client,
            self.members,
            default_currency=settings.default_currency,
        )
        self.settlement = SettlementRequester(self.store, self.settlement_client)

    async def aclose(self):
        """Close all HTTP clients."""
        try:
            await self.membership_client.aclose()
        finally:
            try:
                await self.expense_client.aclose()
            finally:
                await self.settlement_client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()

    @property
    def active_group(self) -> Group | None:
        """The active group, if any."""
        return self.groups.active_group

    def require_active_group(self) -> Group:
        """Return the active group or raise NoActiveGroupError."""
        group = self.groups.active_group
        if group is None:
            raise NoActiveGroupError()
        return group

    async def open(self, preferred_group_id: int | None = None) -> Group | None:
        """
        Load groups and select one.

        Args:
            preferred_group_id: Group to select if it still exists; otherwise
                the first group is selected

        Returns:
            The selected group, or None if there are no groups
        """
        groups = await self.groups.list(auto_select=False)
        if not groups:
            await self.groups.select_active(None)
            return None

        ids = [g.id for g in groups]
        if preferred_group_id in ids:
            target = preferred_group_id
        else:
            if preferred_group_id is not None:
                logger.info(
                    f"Group {preferred_group_id} no longer exists, using {ids[0]}"
                )
            target = ids[0]

        await self.groups.select_active(target)
        return self.groups.active_group

    async def compute_settlement(self) -> SettlementPlan | None:
        """Request a settlement plan for the active group in its base currency."""
        group = self.require_active_group()
        return await self.settlement.compute(group.id, group.base_currency)

    async def check_plan(self):
        """
        Verify the held plan against the loaded expenses and recorded transfers.

        Raises:
            SettleUpError: No plan has been computed for the active group
            InvalidResponseError: The plan doesn't settle the balances
        """
        group = self.require_active_group()
        plan = self.settlement.plan
        if plan is None or self.settlement.plan_group_id != group.id:
            raise SettleUpError(f"No settlement plan computed for group {group.id}")

        balances = compute_balances(self.expenses.items)
        recorded = await self.settlement.list_transfers(group.id)
        balances = apply_transfers(balances, recorded)
        verify_plan(plan, balances)
        logger.info(f"Settlement plan for group {group.id} verified")
