"""Expense ledger and expense draft for the active group."""

from __future__ import annotations

import logging
from decimal import Decimal

from .clients.expense import ExpenseClient
from .exceptions import (
    DuplicateSplitError,
    LedgerValidationError,
    NegativeAmountError,
    RosterNotLoadedError,
    UnbalancedExpenseError,
    UnknownMemberError,
)
from .models import (
    Expense,
    ExpenseDraft,
    ExpenseRequest,
    Member,
    Split,
    normalize_currency,
    to_money,
)
from .roster import MemberRoster, ScopedCollection
from .store import ActiveGroupStore, ScopePhase

logger = logging.getLogger(__name__)


class ExpenseLedger(ScopedCollection[Expense]):
    """
    Expenses of the active group plus the in-progress expense draft.

    The draft follows the member roster: whenever the roster is reloaded the
    draft gets one zero split per member and the first member as payer, so it
    never references a member that isn't in the roster.

    Expenses are validated against the loaded roster before they are sent.
    An expense whose shares don't add up to its total is rejected here rather
    than left to the service.
    """

    resource = "expenses"

    def __init__(
        self,
        store: ActiveGroupStore,
        client: ExpenseClient,
        roster: MemberRoster,
        default_currency: str = "USD",
    ):
        """Initialize the ledger and follow roster reloads."""
        super().__init__(store, client)
        self.roster = roster
        self.default_currency = default_currency
        self._draft = ExpenseDraft(currency=default_currency)
        self._draft_group_id: int | None = None
        roster.subscribe(self._on_roster_loaded)

    @property
    def draft(self) -> ExpenseDraft:
        """The in-progress expense."""
        return self._draft

    @property
    def draft_group_id(self) -> int | None:
        """The group the draft was initialized for."""
        return self._draft_group_id

    def invalidate(self):
        """Drop expenses and the draft of the previous group."""
        super().invalidate()
        self._draft = ExpenseDraft(currency=self.default_currency)
        self._draft_group_id = None

    async def _fetch(self, group_id: int) -> list[Expense]:
        expenses: list[Expense] = await self.client.list_expenses(group_id)
        return expenses

    # ========================================================================
    # Draft
    # ========================================================================

    def _on_roster_loaded(self, group_id: int, members: list[Member]):
        self.reset_draft(members)
        self._draft_group_id = group_id
        self.store.advance(ScopePhase.DRAFT_INITIALIZED, group_id, self.store.generation)

    def reset_draft(self, members: list[Member]):
        """
        Rebuild the draft's payer and splits from a roster.

        Currency and total are kept.
        """
        self._draft = ExpenseDraft(
            payer_member_id=members[0].id if members else None,
            currency=self._draft.currency,
            total_amount=self._draft.total_amount,
            splits=[Split(member_id=m.id) for m in members],
        )
        logger.debug(f"Draft reset with {len(members)} splits")

    def set_payer(self, member_id: int):
        """Set the draft payer. Must be a loaded member."""
        if member_id not in self.roster.member_ids():
            raise UnknownMemberError(member_id, self.roster.group_id, "Payer")
        self._draft.payer_member_id = member_id

    def set_share(self, member_id: int, amount: Decimal | int | float | str):
        """
        Set one member's share in the draft.

        Raises:
            ValueError: The amount isn't a finite number
            UnknownMemberError: The member has no split in the draft
        """
        value = to_money(amount)
        if all(s.member_id != member_id for s in self._draft.splits):
            raise UnknownMemberError(member_id, self.roster.group_id, "Split member")
        self._draft.set_share(member_id, value)

    def set_total(self, amount: Decimal | int | float | str):
        """Set the draft total."""
        self._draft.total_amount = to_money(amount)

    def set_currency(self, currency: str):
        """Set the draft currency."""
        self._draft.currency = normalize_currency(currency)

    def split_evenly(self):
        """
        Spread the draft total across all draft splits.

        Works in whole cents; leftover cents go to the first members so the
        shares always add up to the total exactly.
        """
        splits = self._draft.splits
        if not splits:
            return
        total = self._draft.total_amount
        if total < 0:
            raise NegativeAmountError(f"Total amount must not be negative: {total}")

        cents = int(total * 100)
        base, remainder = divmod(cents, len(splits))
        for i, split in enumerate(splits):
            share_cents = base + (1 if i < remainder else 0)
            split.share_amount = to_money(Decimal(share_cents) / 100)
        logger.debug(f"Split {total} evenly across {len(splits)} members")

    async def submit_draft(self, group_id: int) -> Expense:
        """
        Create an expense from the draft, then reset the draft.

        Raises:
            RosterNotLoadedError: The draft wasn't initialized for group_id
            LedgerValidationError: The draft doesn't pass validation
        """
        if self._draft_group_id != group_id:
            raise RosterNotLoadedError(group_id)
        draft = self._draft
        if draft.payer_member_id is None:
            raise LedgerValidationError("Draft has no payer")

        expense = await self.create(
            group_id,
            draft.payer_member_id,
            draft.currency,
            draft.total_amount,
            draft.splits,
        )

        if self._draft_group_id == group_id:
            self._draft.total_amount = Decimal("0.00")
            self.reset_draft(self.roster.items)
        return expense

    # ========================================================================
    # Validation
    # ========================================================================

    def validate(
        self,
        group_id: int,
        payer_member_id: int,
        currency: str,
        total_amount: Decimal | int | float | str,
        splits: list[Split],
    ) -> ExpenseRequest:
        """
        Check an expense against the loaded roster and build its request body.

        Args:
            group_id: Group the expense belongs to
            payer_member_id: Member who paid
            currency: Currency code
            total_amount: Expense total
            splits: One split per participating member

        Returns:
            The request body to send

        Raises:
            RosterNotLoadedError: The roster isn't loaded for group_id
            UnknownMemberError: Payer or a split member isn't in the roster
            DuplicateSplitError: A member has two splits
            NegativeAmountError: Total or a share is below zero
            UnbalancedExpenseError: Shares don't add up to the total
            InvalidCurrencyError: Currency code isn't ISO-like
        """
        if self.roster.group_id != group_id:
            raise RosterNotLoadedError(group_id)
        known = self.roster.member_ids()

        currency = normalize_currency(currency)
        total = to_money(total_amount)
        if total < 0:
            raise NegativeAmountError(f"Total amount must not be negative: {total}")

        if payer_member_id not in known:
            raise UnknownMemberError(payer_member_id, group_id, "Payer")

        seen: set[int] = set()
        for split in splits:
            if split.member_id not in known:
                raise UnknownMemberError(split.member_id, group_id, "Split member")
            if split.member_id in seen:
                raise DuplicateSplitError(split.member_id)
            if split.share_amount < 0:
                raise NegativeAmountError(
                    f"Share of member {split.member_id} must not be negative: "
                    f"{split.share_amount}"
                )
            seen.add(split.member_id)

        share_total = sum((to_money(s.share_amount) for s in splits), Decimal("0.00"))
        if share_total != total:
            raise UnbalancedExpenseError(total, share_total)

        return ExpenseRequest(
            group_id=group_id,
            payer_member_id=payer_member_id,
            currency=currency,
            total_amount=total,
            splits=[
                Split(member_id=s.member_id, share_amount=s.share_amount)
                for s in splits
            ],
        )

    # ========================================================================
    # Mutations
    # ========================================================================

    async def create(
        self,
        group_id: int,
        payer_member_id: int,
        currency: str,
        total_amount: Decimal | int | float | str,
        splits: list[Split],
    ) -> Expense:
        """Validate and record an expense, then reload the ledger."""
        request = self.validate(group_id, payer_member_id, currency, total_amount, splits)
        expense: Expense = await self.client.create_expense(request)
        await self.list(group_id)
        return expense

    async def update(
        self,
        expense_id: int,
        group_id: int,
        payer_member_id: int,
        currency: str,
        total_amount: Decimal | int | float | str,
        splits: list[Split],
    ) -> Expense:
        """Validate and replace an expense, then reload the ledger."""
        request = self.validate(group_id, payer_member_id, currency, total_amount, splits)
        expense: Expense = await self.client.update_expense(expense_id, request)
        logger.info(f"Updated expense {expense_id}")
        await self.list(group_id)
        return expense

    async def delete(self, expense_id: int, group_id: int):
        """Delete an expense, then reload the ledger."""
        await self.client.delete_expense(expense_id)
        await self.list(group_id)
