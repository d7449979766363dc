"""SettleUp - Client for group expense sharing and settlement services."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .db import Database
from .models import (
    Category,
    Expense,
    ExpenseDraft,
    Group,
    Member,
    SettlementPlan,
    Split,
    Transfer,
)
from .netting import compute_balances, compute_transfers, verify_plan
from .session import SettleUpSession
from .store import ActiveGroupStore, ScopePhase

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Category",
    "Expense",
    "ExpenseDraft",
    "Group",
    "Member",
    "SettlementPlan",
    "Split",
    "Transfer",
    "compute_balances",
    "compute_transfers",
    "verify_plan",
    "SettleUpSession",
    "ActiveGroupStore",
    "ScopePhase",
]
