"""Group directory: the list of groups and the active group selection."""

from __future__ import annotations

import logging

from .clients.membership import MembershipClient
from .exceptions import UnknownGroupError
from .models import Group, normalize_currency
from .store import ActiveGroupStore

logger = logging.getLogger(__name__)


class GroupDirectory:
    """Loads and edits groups and owns the active group selection."""

    def __init__(self, store: ActiveGroupStore, client: MembershipClient):
        """Initialize the directory."""
        self.store = store
        self.client = client
        self._groups: list[Group] = []
        self._request_seq = 0

    @property
    def groups(self) -> list[Group]:
        """A copy of the loaded groups."""
        return list(self._groups)

    @property
    def active_group(self) -> Group | None:
        """The loaded group matching the active selection."""
        active_id = self.store.active_group_id
        for group in self._groups:
            if group.id == active_id:
                return group
        return None

    async def select_active(self, group_id: int | None) -> bool:
        """
        Make a group the active one.

        Re-selecting the active group does nothing. A new group reloads
        members, categories and expenses exactly once.

        Returns:
            True if the selection changed
        """
        if group_id is not None and self._groups:
            if all(g.id != group_id for g in self._groups):
                raise UnknownGroupError(group_id)
        return await self.store.select(group_id)

    async def list(self, auto_select: bool = True) -> list[Group]:
        """
        Load all groups.

        Args:
            auto_select: Select the first group when nothing is selected yet,
                or when the selected group no longer exists

        Returns:
            All groups
        """
        self._request_seq += 1
        seq = self._request_seq

        groups = await self.client.list_groups()

        if seq != self._request_seq:
            logger.debug("Discarding stale group list")
            return groups

        self._groups = groups
        logger.info(f"Loaded {len(groups)} groups")

        if auto_select:
            active_id = self.store.active_group_id
            if active_id is None or all(g.id != active_id for g in groups):
                await self.store.select(groups[0].id if groups else None)

        return groups

    async def get(self, group_id: int) -> Group:
        """Fetch a single group."""
        group: Group = await self.client.get_group(group_id)
        return group

    async def create(self, name: str, base_currency: str) -> Group:
        """Create a group, then reload the list."""
        name = name.strip()
        if not name:
            raise ValueError("Group name must not be empty")
        currency = normalize_currency(base_currency)

        group = await self.client.create_group(name, currency)
        await self.list()
        return group

    async def update(self, group_id: int, name: str, base_currency: str) -> Group:
        """Rename a group or change its base currency, then reload the list."""
        name = name.strip()
        if not name:
            raise ValueError("Group name must not be empty")
        currency = normalize_currency(base_currency)

        group = await self.client.update_group(group_id, name, currency)
        logger.info(f"Updated group {group_id}")
        await self.list()
        return group

    async def delete(self, group_id: int):
        """
        Delete a group, then reload the list.

        Deleting the active group clears the selection, and with it every
        member, category and expense held for it, before the new list is
        loaded. The list load then selects the first remaining group.
        """
        await self.client.delete_group(group_id)
        self._groups = [g for g in self._groups if g.id != group_id]

        if self.store.active_group_id == group_id:
            await self.store.select(None)

        await self.list()
