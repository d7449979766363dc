"""Active group store.

The active group id is the single piece of state every scoped component keys
off. Only `ActiveGroupStore.select` changes it; components subscribe and are
told to drop their state and reload.

Selecting a new group runs this sequence:

    GROUP_SELECTED -> MEMBERS_LOADING -> MEMBERS_LOADED -> DRAFT_INITIALIZED

Every change bumps a generation counter. A response is only applied when the
generation it was requested under is still the current one, so a slow answer
for a previously active group never overwrites the new group's data.
"""

import asyncio
import logging
from enum import StrEnum
from typing import Protocol

from .exceptions import NoActiveGroupError

logger = logging.getLogger(__name__)


class ScopePhase(StrEnum):
    """Where the active group's scope is in its load sequence."""

    IDLE = "idle"
    GROUP_SELECTED = "group_selected"
    MEMBERS_LOADING = "members_loading"
    MEMBERS_LOADED = "members_loaded"
    DRAFT_INITIALIZED = "draft_initialized"


class ScopeSubscriber(Protocol):
    """A component whose state is scoped to the active group."""

    def invalidate(self) -> None:
        """Drop all state belonging to the previous group."""
        ...

    async def reload(self, group_id: int) -> None:
        """Load state for a newly selected group."""
        ...


class ActiveGroupStore:
    """Holds the active group selection and fans reloads out to subscribers."""

    def __init__(self):
        """Initialize with no active group."""
        self._active_group_id: int | None = None
        self._generation = 0
        self._phase = ScopePhase.IDLE
        self._subscribers: list[ScopeSubscriber] = []
        self._fan_out: asyncio.Task | None = None

    @property
    def active_group_id(self) -> int | None:
        """The selected group id, or None."""
        return self._active_group_id

    @property
    def generation(self) -> int:
        """Counter bumped on every selection change."""
        return self._generation

    @property
    def phase(self) -> ScopePhase:
        """Current load phase of the active scope."""
        return self._phase

    def subscribe(self, subscriber: ScopeSubscriber):
        """Register a scoped component."""
        self._subscribers.append(subscriber)

    def require_active(self) -> int:
        """Return the active group id or raise NoActiveGroupError."""
        if self._active_group_id is None:
            raise NoActiveGroupError()
        return self._active_group_id

    def is_current(self, group_id: int, generation: int) -> bool:
        """True if a request made for group_id under generation may be applied."""
        return generation == self._generation and group_id == self._active_group_id

    def advance(self, phase: ScopePhase, group_id: int, generation: int) -> bool:
        """
        Move the scope to a new phase.

        Ignored when the caller's request belongs to a superseded selection.

        Returns:
            True if the phase was updated
        """
        if not self.is_current(group_id, generation):
            return False
        logger.debug(f"Group {group_id}: {self._phase} -> {phase}")
        self._phase = phase
        return True

    async def select(self, group_id: int | None) -> bool:
        """
        Change the active group.

        Selecting the group that is already active is a no-op. Otherwise all
        subscribers are invalidated before this coroutine first yields, any
        reload still running for the previous selection is cancelled, and the
        subscribers reload for the new group.

        Args:
            group_id: Group to activate, or None to clear the selection

        Returns:
            False if the group was already active, True otherwise

        Raises:
            Whatever a subscriber's reload raised. A reload superseded by a
            later selection returns normally.
        """
        if group_id == self._active_group_id:
            logger.debug(f"Group {group_id} already active, nothing to reload")
            return False

        previous = self._active_group_id
        self._active_group_id = group_id
        self._generation += 1
        self._phase = (
            ScopePhase.GROUP_SELECTED if group_id is not None else ScopePhase.IDLE
        )

        if self._fan_out is not None and not self._fan_out.done():
            logger.debug(f"Cancelling reload for group {previous}")
            self._fan_out.cancel()
        self._fan_out = None

        for subscriber in self._subscribers:
            subscriber.invalidate()

        logger.info(f"Active group changed: {previous} -> {group_id}")

        if group_id is None:
            return True

        task = asyncio.create_task(self._reload_all(group_id))
        self._fan_out = task
        await asyncio.wait({task})

        if task.cancelled():
            logger.debug(f"Reload for group {group_id} was superseded")
            return True

        task.result()
        return True

    async def wait_idle(self):
        """Wait for the current fan-out (if any) to finish."""
        task = self._fan_out
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def _reload_all(self, group_id: int):
        await asyncio.gather(*(s.reload(group_id) for s in self._subscribers))
