"""Expense service client."""

import logging

from ..models import Expense, ExpenseRequest
from .resource import ResourceClient

logger = logging.getLogger(__name__)


class ExpenseClient(ResourceClient):
    """Client for the expense service."""

    PREFIX = "/api/expense"

    async def list_expenses(self, group_id: int) -> list[Expense]:
        """Get all expenses of a group."""
        expenses: list[Expense] = await self.request(
            "GET", f"/groups/{group_id}/expenses", response_type=list[Expense]
        )
        return expenses or []

    async def get_expense(self, expense_id: int) -> Expense:
        """Get a single expense."""
        expense: Expense = await self.request(
            "GET", f"/expenses/{expense_id}", response_type=Expense
        )
        return expense

    async def create_expense(self, request: ExpenseRequest) -> Expense:
        """Record a new expense with its splits."""
        expense: Expense = await self.request(
            "POST", "/expenses", json=request.to_wire(), response_type=Expense
        )
        logger.info(
            f"Recorded expense {expense.id}: {expense.currency} {expense.total_amount} "
            f"paid by member {expense.payer_member_id}"
        )
        return expense

    async def update_expense(self, expense_id: int, request: ExpenseRequest) -> Expense:
        """Replace an expense. Splits are replaced in full."""
        expense: Expense = await self.request(
            "PUT",
            f"/expenses/{expense_id}",
            json=request.to_wire(),
            response_type=Expense,
        )
        return expense

    async def delete_expense(self, expense_id: int):
        """Delete an expense."""
        await self.request("DELETE", f"/expenses/{expense_id}")
        logger.info(f"Deleted expense {expense_id}")
