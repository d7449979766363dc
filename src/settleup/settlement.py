"""Settlement requester: asks the settlement service for a transfer plan."""

import logging
from decimal import Decimal
from enum import StrEnum

from .clients.settlement import SettlementClient
from .exceptions import LedgerValidationError, NegativeAmountError, NoActiveGroupError
from .models import RecordedTransfer, SettlementPlan, to_money
from .store import ActiveGroupStore

logger = logging.getLogger(__name__)


class SettlementStatus(StrEnum):
    """State of the settlement request."""

    IDLE = "idle"
    COMPUTING = "computing"
    READY = "ready"
    FAILED = "failed"


class SettlementRequester:
    """
    Requests settlement plans and holds the latest one for display.

    IDLE -> COMPUTING -> READY | FAILED, and READY/FAILED -> COMPUTING on
    every new request. Only the most recent request is ever applied; the
    answer to a superseded one is dropped whether it succeeded or failed.

    A failed request keeps the previous plan. Changing the active group drops
    the plan, since it was computed for the old group.
    """

    def __init__(self, store: ActiveGroupStore, client: SettlementClient):
        """Initialize and subscribe to active group changes."""
        self.store = store
        self.client = client
        self._status = SettlementStatus.IDLE
        self._plan: SettlementPlan | None = None
        self._plan_group_id: int | None = None
        self._error: str | None = None
        self._request_seq = 0
        store.subscribe(self)

    @property
    def status(self) -> SettlementStatus:
        """Current request state."""
        return self._status

    @property
    def plan(self) -> SettlementPlan | None:
        """The latest successfully computed plan."""
        return self._plan

    @property
    def plan_group_id(self) -> int | None:
        """The group the held plan was computed for."""
        return self._plan_group_id

    @property
    def error(self) -> str | None:
        """Message of the last failed request."""
        return self._error

    def invalidate(self):
        """Drop the plan of the previous group and any pending request."""
        self._request_seq += 1
        self._status = SettlementStatus.IDLE
        self._plan = None
        self._plan_group_id = None
        self._error = None

    async def reload(self, group_id: int):
        """Plans are only computed on request."""
        pass

    def _is_latest(self, seq: int, group_id: int, generation: int) -> bool:
        return seq == self._request_seq and self.store.is_current(group_id, generation)

    async def compute(
        self, group_id: int, base_currency: str
    ) -> SettlementPlan | None:
        """
        Request a settlement plan.

        Args:
            group_id: The group to settle
            base_currency: Currency the plan is expressed in

        Returns:
            The new plan, or None if this request was superseded before it
            completed

        Raises:
            NoActiveGroupError: group_id isn't the active group (state is
                left untouched)
            APIError: The request failed (state becomes FAILED, the previous
                plan is kept)
        """
        if group_id != self.store.active_group_id:
            raise NoActiveGroupError(f"Group {group_id} is not the active group")

        self._request_seq += 1
        seq = self._request_seq
        generation = self.store.generation
        self._status = SettlementStatus.COMPUTING
        self._error = None
        logger.info(f"Computing settlement for group {group_id} in {base_currency}")

        try:
            plan = await self.client.compute_settlement(group_id, base_currency)
        except Exception as e:
            if not self._is_latest(seq, group_id, generation):
                logger.debug(f"Dropping failure of superseded settlement request: {e}")
                return None
            self._status = SettlementStatus.FAILED
            self._error = str(e)
            logger.error(f"Settlement computation failed: {e}")
            raise

        if not self._is_latest(seq, group_id, generation):
            logger.debug(f"Dropping superseded settlement plan for group {group_id}")
            return None

        self._plan = plan
        self._plan_group_id = group_id
        self._status = SettlementStatus.READY
        logger.info(
            f"Settlement plan for group {group_id}: {len(plan.transfers)} transfers"
        )
        return plan

    async def record_transfer(
        self,
        group_id: int,
        from_member_id: int,
        to_member_id: int,
        amount: Decimal | int | float | str,
        note: str | None = None,
    ) -> RecordedTransfer:
        """
        Record a completed payment with the settlement service.

        The held plan is not patched; compute again to see the new plan.
        """
        if from_member_id == to_member_id:
            raise LedgerValidationError(
                f"Cannot record a transfer from member {from_member_id} to itself"
            )
        value = to_money(amount)
        if value <= 0:
            raise NegativeAmountError(f"Transfer amount must be positive: {value}")

        transfer: RecordedTransfer = await self.client.record_transfer(
            group_id, from_member_id, to_member_id, value, note
        )
        return transfer

    async def list_transfers(self, group_id: int) -> list[RecordedTransfer]:
        """Get the recorded transfers of a group."""
        transfers: list[RecordedTransfer] = await self.client.list_transfers(group_id)
        return transfers
