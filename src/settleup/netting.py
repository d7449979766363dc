"""Pure settlement arithmetic.

The settlement service computes plans; the client never depends on how.
These functions state the contract a plan has to meet and give a reference
greedy implementation of it:

- `compute_balances` derives each member's net balance from expenses
  (positive means the member is owed money),
- `compute_transfers` pairs the largest debtor with the largest creditor
  until every balance is zero,
- `verify_plan` checks that a plan's transfers reproduce the balances.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .exceptions import InvalidResponseError
from .models import Expense, RecordedTransfer, SettlementPlan, Transfer, to_money

ZERO = Decimal("0.00")


def compute_balances(expenses: Iterable[Expense]) -> dict[int, Decimal]:
    """
    Compute each member's net balance.

    The payer is credited with the sum of the shares; every split member is
    debited with their share.

    Args:
        expenses: Expenses of one group

    Returns:
        Mapping of member id to balance (negative = owes)
    """
    balances: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        balances[expense.payer_member_id] += expense.share_total()
        for split in expense.splits:
            balances[split.member_id] -= split.share_amount
    return dict(balances)


def apply_transfers(
    balances: Mapping[int, Decimal], transfers: Iterable[RecordedTransfer]
) -> dict[int, Decimal]:
    """
    Apply completed payments to balances.

    The paying member owes less afterwards; the receiving member is owed less.
    """
    result: dict[int, Decimal] = defaultdict(lambda: ZERO, balances)
    for transfer in transfers:
        result[transfer.from_member_id] += transfer.amount
        result[transfer.to_member_id] -= transfer.amount
    return dict(result)


def compute_transfers(balances: Mapping[int, Decimal]) -> list[Transfer]:
    """
    Compute transfers that settle all balances.

    Greedy: the largest debtor pays the largest creditor, in cents. Ties are
    broken by member id so the result is deterministic.

    Args:
        balances: Mapping of member id to balance

    Returns:
        Transfers from debtors to creditors
    """
    creditors: list[tuple[int, Decimal]] = []
    debtors: list[tuple[int, Decimal]] = []
    for member_id, balance in balances.items():
        amount = to_money(balance)
        if amount > 0:
            creditors.append((member_id, amount))
        elif amount < 0:
            debtors.append((member_id, -amount))

    creditors.sort(key=lambda x: (-x[1], x[0]))
    debtors.sort(key=lambda x: (-x[1], x[0]))

    transfers: list[Transfer] = []
    i = j = 0
    while i < len(debtors) and j < len(creditors):
        debtor_id, debt = debtors[i]
        creditor_id, credit = creditors[j]
        amount = min(debt, credit)
        transfers.append(
            Transfer(from_member_id=debtor_id, to_member_id=creditor_id, amount=amount)
        )

        debt -= amount
        credit -= amount
        if debt == 0:
            i += 1
        else:
            debtors[i] = (debtor_id, debt)
        if credit == 0:
            j += 1
        else:
            creditors[j] = (creditor_id, credit)

    return transfers


def net_by_member(transfers: Iterable[Transfer]) -> dict[int, Decimal]:
    """
    Sum transfers per member: received minus paid.

    For a valid plan this equals each member's balance.
    """
    net: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for transfer in transfers:
        net[transfer.to_member_id] += transfer.amount
        net[transfer.from_member_id] -= transfer.amount
    return dict(net)


def verify_plan(plan: SettlementPlan, balances: Mapping[int, Decimal]):
    """
    Check that a plan settles the given balances.

    Raises:
        InvalidResponseError: A transfer goes from a member to itself, or the
            transfers don't reproduce some member's balance
    """
    for transfer in plan.transfers:
        if transfer.from_member_id == transfer.to_member_id:
            raise InvalidResponseError(
                f"Plan contains a transfer from member {transfer.from_member_id} "
                f"to itself"
            )

    net = net_by_member(plan.transfers)
    mismatches = []
    for member_id in sorted(set(net) | set(balances)):
        expected = to_money(balances.get(member_id, ZERO))
        actual = to_money(net.get(member_id, ZERO))
        if expected != actual:
            mismatches.append(f"member {member_id}: expected {expected}, got {actual}")

    if mismatches:
        raise InvalidResponseError(
            "Settlement plan does not match balances: " + "; ".join(mismatches)
        )
