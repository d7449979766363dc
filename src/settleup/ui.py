"""Interactive prompts for group selection and share entry."""

import logging
from decimal import Decimal
from typing import Any

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document

from .models import Group, Member, to_money

logger = logging.getLogger(__name__)


class GroupCompleter(Completer):
    """Fuzzy search completer for groups."""

    def __init__(self, groups: list[Group]):
        """Initialize the completer with available groups."""
        self.groups = groups

        self.searchable = []
        self.label_to_id = {}
        for group in groups:
            label = f"{group.name} (#{group.id}, {group.base_currency})"
            self.searchable.append((group.id, label))
            self.label_to_id[label] = group.id

    def get_completions(self, document: Document, complete_event: Any):
        """Get fuzzy-matched completions."""
        query = document.text.lower()

        for _group_id, label in self.searchable:
            if not query or self._fuzzy_match(query, label.lower()):
                yield Completion(
                    text=label,
                    start_position=-len(document.text),
                    display=label,
                )

    def _fuzzy_match(self, query: str, text: str) -> bool:
        """
        Fuzzy match: all characters in query must appear in order in text.

        Example:
            query="trp" matches "Trip (#3, USD)"
        """
        query_idx = 0
        for char in text:
            if query_idx < len(query) and char == query[query_idx]:
                query_idx += 1
        return query_idx == len(query)


async def select_group_interactive(
    groups: list[Group], active_group_id: int | None = None
) -> int | None:
    """
    Interactive group selection with fuzzy search.

    Args:
        groups: Available groups
        active_group_id: Currently active group, pre-filled as the default

    Returns:
        Selected group id, or None to keep the current selection
    """
    if not groups:
        print("No groups yet. Create one with: settleup groups create <name>")
        return None

    completer = GroupCompleter(groups)
    session: PromptSession[str] = PromptSession(completer=completer)

    default_text = ""
    for label, group_id in completer.label_to_id.items():
        if group_id == active_group_id:
            default_text = label
            break

    print("Type to search, press Enter to confirm, Ctrl+C to cancel\n")

    try:
        while True:
            result = await session.prompt_async(
                "Group: ", default=default_text, complete_while_typing=True
            )
            if not result:
                return None

            group_id = completer.label_to_id.get(result)
            if group_id is not None:
                logger.info(f"User selected group {group_id}")
                return group_id

            # Accept a bare id too
            if result.strip().isdigit():
                wanted = int(result.strip())
                if wanted in completer.label_to_id.values():
                    return wanted

            print("❌ Unknown group. Select one from the list or press Tab to complete.")
            default_text = ""

    except KeyboardInterrupt:
        print("\n⏭️  Cancelled")
        return None
    except EOFError:
        return None


async def prompt_shares(
    members: list[Member], total: Decimal, currency: str
) -> dict[int, Decimal] | None:
    """
    Ask for each member's share of an expense.

    Shows the remaining unassigned amount as the default for the last member.

    Args:
        members: Members to ask for, in roster order
        total: Expense total
        currency: Currency code for display

    Returns:
        Mapping of member id to share, or None if cancelled
    """
    session: PromptSession[str] = PromptSession()
    shares: dict[int, Decimal] = {}

    print(f"\nSplit {currency} {total} (empty = 0)\n")

    try:
        for i, member in enumerate(members):
            remaining = total - sum(shares.values(), Decimal("0.00"))
            default = str(remaining) if i == len(members) - 1 else ""

            while True:
                text = await session.prompt_async(
                    f"  {member.email}: ", default=default
                )
                try:
                    shares[member.id] = to_money(text.strip() or "0")
                    break
                except ValueError:
                    print("   ❌ Not an amount, try again")
                    default = ""

    except KeyboardInterrupt:
        print("\n⏭️  Cancelled")
        return None
    except EOFError:
        return None

    return shares
