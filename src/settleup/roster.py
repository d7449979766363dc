"""Group-scoped collections: members and categories."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from .clients.membership import MembershipClient
from .models import Category, Member
from .store import ActiveGroupStore, ScopePhase

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT")


class ScopedCollection(Generic[ItemT]):
    """
    Items belonging to one group, replaced wholesale on every load.

    Mutations never patch the held list: they reload it from the service so
    what is held always equals server state. A load is applied only if it is
    the latest load this collection issued and the group it was requested for
    is still active under the same selection.
    """

    resource = "items"

    def __init__(self, store: ActiveGroupStore, client: Any):
        """Initialize and subscribe to active group changes."""
        self.store = store
        self.client = client
        self._items: list[ItemT] = []
        self._group_id: int | None = None
        self._request_seq = 0
        store.subscribe(self)

    @property
    def group_id(self) -> int | None:
        """The group the held items belong to, or None if nothing is loaded."""
        return self._group_id

    @property
    def items(self) -> list[ItemT]:
        """A copy of the held items."""
        return list(self._items)

    def invalidate(self):
        """Drop held items; anything still in flight becomes stale."""
        self._request_seq += 1
        self._items = []
        self._group_id = None

    async def reload(self, group_id: int):
        """Reload for a newly selected group."""
        await self.list(group_id)

    async def list(self, group_id: int) -> list[ItemT]:
        """
        Load the items of a group.

        Args:
            group_id: The group to load

        Returns:
            The items returned by the service. They are only held (and shown)
            if the response is still current when it arrives.
        """
        self._request_seq += 1
        seq = self._request_seq
        generation = self.store.generation
        self._on_loading(group_id, generation)

        items = await self._fetch(group_id)

        if seq != self._request_seq or not self.store.is_current(group_id, generation):
            logger.debug(f"Discarding stale {self.resource} response for group {group_id}")
            return items

        self._items = items
        self._group_id = group_id
        logger.info(f"Loaded {len(items)} {self.resource} for group {group_id}")
        self._on_loaded(group_id, generation)
        return items

    async def _fetch(self, group_id: int) -> list[ItemT]:
        raise NotImplementedError

    def _on_loading(self, group_id: int, generation: int):
        pass

    def _on_loaded(self, group_id: int, generation: int):
        pass


class MemberRoster(ScopedCollection[Member]):
    """Members of the active group."""

    resource = "members"

    def __init__(self, store: ActiveGroupStore, client: MembershipClient):
        """Initialize the roster."""
        super().__init__(store, client)
        self._listeners: list[Callable[[int, list[Member]], None]] = []

    def subscribe(self, listener: Callable[[int, list[Member]], None]):
        """Register a callback run after every applied roster load."""
        self._listeners.append(listener)

    def member_ids(self) -> set[int]:
        """Ids of the loaded members."""
        return {m.id for m in self._items}

    def get(self, member_id: int) -> Member | None:
        """Find a loaded member by id."""
        for member in self._items:
            if member.id == member_id:
                return member
        return None

    async def _fetch(self, group_id: int) -> list[Member]:
        members: list[Member] = await self.client.list_members(group_id)
        return members

    def _on_loading(self, group_id: int, generation: int):
        self.store.advance(ScopePhase.MEMBERS_LOADING, group_id, generation)

    def _on_loaded(self, group_id: int, generation: int):
        self.store.advance(ScopePhase.MEMBERS_LOADED, group_id, generation)
        for listener in self._listeners:
            listener(group_id, self.items)

    async def add(self, group_id: int, email: str, role: str = "MEMBER") -> Member:
        """Add a member, then reload the roster."""
        member: Member = await self.client.add_member(group_id, email, role)
        logger.info(f"Added member {member.id} ({member.email}) to group {group_id}")
        await self.list(group_id)
        return member

    async def update(
        self, group_id: int, member_id: int, email: str, role: str
    ) -> Member:
        """Update a member, then reload the roster."""
        member: Member = await self.client.update_member(
            group_id, member_id, email, role
        )
        await self.list(group_id)
        return member

    async def remove(self, group_id: int, member_id: int):
        """Remove a member, then reload the roster."""
        await self.client.remove_member(group_id, member_id)
        logger.info(f"Removed member {member_id} from group {group_id}")
        await self.list(group_id)


class CategoryRegistry(ScopedCollection[Category]):
    """Categories of the active group."""

    resource = "categories"

    async def _fetch(self, group_id: int) -> list[Category]:
        categories: list[Category] = await self.client.list_categories(group_id)
        return categories

    async def add(self, group_id: int, name: str) -> Category:
        """Add a category, then reload."""
        category: Category = await self.client.add_category(group_id, name)
        logger.info(f"Added category {category.id} ({category.name}) to group {group_id}")
        await self.list(group_id)
        return category

    async def update(self, group_id: int, category_id: int, name: str) -> Category:
        """Rename a category, then reload."""
        category: Category = await self.client.update_category(
            group_id, category_id, name
        )
        await self.list(group_id)
        return category

    async def remove(self, group_id: int, category_id: int):
        """Remove a category, then reload."""
        await self.client.remove_category(group_id, category_id)
        await self.list(group_id)
