"""Settlement service client."""

import logging
from decimal import Decimal

from ..models import (
    RecordedTransfer,
    SettlementComputeRequest,
    SettlementPlan,
    TransferRequest,
)
from .resource import ResourceClient

logger = logging.getLogger(__name__)


class SettlementClient(ResourceClient):
    """Client for the settlement service.

    The settlement algorithm lives entirely on the service side; this client
    only sends the group and currency and parses the returned transfers.
    """

    PREFIX = "/api/settlement"

    async def compute_settlement(
        self, group_id: int, base_currency: str
    ) -> SettlementPlan:
        """
        Request a settlement plan for a group.

        Args:
            group_id: The group to settle
            base_currency: Currency the plan is expressed in

        Returns:
            The plan. Transfers are validated on parse (no self-transfers,
            positive amounts).
        """
        body = SettlementComputeRequest(
            group_id=group_id, base_currency=base_currency
        ).to_wire()
        plan: SettlementPlan | None = await self.request(
            "POST", "/settlements/compute", json=body, response_type=SettlementPlan
        )
        return plan or SettlementPlan()

    async def record_transfer(
        self,
        group_id: int,
        from_member_id: int,
        to_member_id: int,
        amount: Decimal,
        note: str | None = None,
    ) -> RecordedTransfer:
        """Record a completed payment between two members."""
        body = TransferRequest(
            group_id=group_id,
            from_member_id=from_member_id,
            to_member_id=to_member_id,
            amount=amount,
            note=note,
        ).to_wire()
        transfer: RecordedTransfer = await self.request(
            "POST", "/transfers", json=body, response_type=RecordedTransfer
        )
        logger.info(
            f"Recorded transfer {transfer.id}: member {from_member_id} -> "
            f"member {to_member_id} ({amount})"
        )
        return transfer

    async def list_transfers(self, group_id: int) -> list[RecordedTransfer]:
        """Get the recorded transfers of a group."""
        transfers: list[RecordedTransfer] = await self.request(
            "GET", f"/groups/{group_id}/transfers", response_type=list[RecordedTransfer]
        )
        return transfers or []

    async def delete_transfer(self, transfer_id: int):
        """Delete a recorded transfer."""
        await self.request("DELETE", f"/transfers/{transfer_id}")
