"""Pydantic domain models for SettleUp."""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .exceptions import InvalidCurrencyError

MONEY_QUANTUM = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """
    Convert an amount to a Decimal quantized to cents.

    Uses ROUND_HALF_UP for consistency. Floats go through their repr so that
    JSON numbers like 19.99 don't pick up binary noise.
    """
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(value)
    except InvalidOperation as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount.quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def normalize_currency(currency: str) -> str:
    """
    Normalize a currency code to upper case.

    Raises:
        InvalidCurrencyError: If the code isn't three ASCII letters
    """
    code = (currency or "").strip().upper()
    if len(code) != 3 or not code.isascii() or not code.isalpha():
        raise InvalidCurrencyError(currency)
    return code


# Decimal in memory, JSON number on the wire
Money = Annotated[
    Decimal,
    BeforeValidator(to_money),
    PlainSerializer(float, return_type=float, when_used="json"),
]


class WireModel(BaseModel):
    """Base model speaking the services' camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Serialize to a JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# Membership Models
# ============================================================================


class Group(WireModel):
    """A cost-sharing group."""

    id: int
    name: str
    base_currency: str


class Member(WireModel):
    """A member of a group."""

    id: int
    email: str
    role: str = "MEMBER"


class Category(WireModel):
    """An expense category of a group."""

    id: int
    name: str


# ============================================================================
# Expense Models
# ============================================================================


class Split(WireModel):
    """A member's share of one expense."""

    member_id: int
    share_amount: Money = Field(default=Decimal("0.00"), ge=0)


class Expense(WireModel):
    """An expense paid by one member and split across members."""

    id: int
    group_id: int
    payer_member_id: int
    currency: str
    total_amount: Money
    splits: list[Split] = Field(default_factory=list)

    def share_total(self) -> Decimal:
        """Sum of all split shares."""
        return sum((s.share_amount for s in self.splits), Decimal("0.00"))

    def is_balanced(self) -> bool:
        """True when the shares add up to the total."""
        return self.share_total() == self.total_amount


class ExpenseDraft(BaseModel):
    """The in-progress expense form.

    The split set is always derived from the member roster; see
    ExpenseLedger.reset_draft.
    """

    payer_member_id: int | None = None
    currency: str = "USD"
    total_amount: Money = Decimal("0.00")
    splits: list[Split] = Field(default_factory=list)

    def member_ids(self) -> list[int]:
        """Ids of all members referenced by the draft (payer first)."""
        ids = [s.member_id for s in self.splits]
        if self.payer_member_id is not None and self.payer_member_id not in ids:
            ids.insert(0, self.payer_member_id)
        return ids

    def share_total(self) -> Decimal:
        """Sum of all split shares."""
        return sum((s.share_amount for s in self.splits), Decimal("0.00"))

    def set_share(self, member_id: int, amount: Decimal | int | float | str):
        """Set one member's share."""
        for split in self.splits:
            if split.member_id == member_id:
                split.share_amount = to_money(amount)
                return
        raise ValueError(f"Member {member_id} has no split in the draft")


# ============================================================================
# Settlement Models
# ============================================================================


class Transfer(WireModel):
    """A single payment from one member to another."""

    from_member_id: int
    to_member_id: int
    amount: Money = Field(gt=0)

    @model_validator(mode="after")
    def _check_distinct_members(self) -> "Transfer":
        if self.from_member_id == self.to_member_id:
            raise ValueError(
                f"Transfer from member {self.from_member_id} to itself"
            )
        return self


class SettlementPlan(WireModel):
    """Transfers that zero out a group's balances. Derived, never persisted."""

    transfers: list[Transfer] = Field(default_factory=list)


class RecordedTransfer(WireModel):
    """A completed payment recorded with the settlement service."""

    id: int
    group_id: int
    from_member_id: int
    to_member_id: int
    amount: Money
    note: str | None = None


# ============================================================================
# Request Bodies
# ============================================================================


class GroupRequest(WireModel):
    """Body for creating or updating a group."""

    name: str
    base_currency: str


class MemberRequest(WireModel):
    """Body for adding or updating a member."""

    email: str
    role: str = "MEMBER"


class CategoryRequest(WireModel):
    """Body for adding or updating a category."""

    name: str


class ExpenseRequest(WireModel):
    """Body for creating or updating an expense. Splits are always sent in full."""

    group_id: int
    payer_member_id: int
    currency: str
    total_amount: Money
    splits: list[Split]


class SettlementComputeRequest(WireModel):
    """Body for requesting a settlement plan."""

    group_id: int
    base_currency: str


class TransferRequest(WireModel):
    """Body for recording a completed transfer."""

    group_id: int
    from_member_id: int
    to_member_id: int
    amount: Money
    note: str | None = None


# ============================================================================
# Status Models
# ============================================================================


class ServiceCheck(BaseModel):
    """Outcome of probing one service endpoint."""

    name: str
    url: str
    ok: bool
    error: str | None = None
