"""Membership service client (groups, members, categories)."""

import logging

from ..models import (
    Category,
    CategoryRequest,
    Group,
    GroupRequest,
    Member,
    MemberRequest,
)
from .resource import ResourceClient

logger = logging.getLogger(__name__)


class MembershipClient(ResourceClient):
    """Client for the membership service."""

    PREFIX = "/api/membership"

    # ========================================================================
    # Groups
    # ========================================================================

    async def list_groups(self) -> list[Group]:
        """Get all groups."""
        groups: list[Group] = await self.request(
            "GET", "/groups", response_type=list[Group]
        )
        return groups or []

    async def get_group(self, group_id: int) -> Group:
        """Get a single group."""
        group: Group = await self.request(
            "GET", f"/groups/{group_id}", response_type=Group
        )
        return group

    async def create_group(self, name: str, base_currency: str) -> Group:
        """Create a group."""
        body = GroupRequest(name=name, base_currency=base_currency).to_wire()
        group: Group = await self.request(
            "POST", "/groups", json=body, response_type=Group
        )
        logger.info(f"Created group {group.id} ({group.name})")
        return group

    async def update_group(self, group_id: int, name: str, base_currency: str) -> Group:
        """Update a group's name and base currency."""
        body = GroupRequest(name=name, base_currency=base_currency).to_wire()
        group: Group = await self.request(
            "PUT", f"/groups/{group_id}", json=body, response_type=Group
        )
        return group

    async def delete_group(self, group_id: int):
        """Delete a group. The service cascades to its members and categories."""
        await self.request("DELETE", f"/groups/{group_id}")
        logger.info(f"Deleted group {group_id}")

    # ========================================================================
    # Members
    # ========================================================================

    async def list_members(self, group_id: int) -> list[Member]:
        """Get the members of a group."""
        members: list[Member] = await self.request(
            "GET", f"/groups/{group_id}/members", response_type=list[Member]
        )
        return members or []

    async def add_member(self, group_id: int, email: str, role: str) -> Member:
        """Add a member to a group."""
        body = MemberRequest(email=email, role=role).to_wire()
        member: Member = await self.request(
            "POST", f"/groups/{group_id}/members", json=body, response_type=Member
        )
        return member

    async def update_member(
        self, group_id: int, member_id: int, email: str, role: str
    ) -> Member:
        """Update a member's email and role."""
        body = MemberRequest(email=email, role=role).to_wire()
        member: Member = await self.request(
            "PUT",
            f"/groups/{group_id}/members/{member_id}",
            json=body,
            response_type=Member,
        )
        return member

    async def remove_member(self, group_id: int, member_id: int):
        """Remove a member from a group."""
        await self.request("DELETE", f"/groups/{group_id}/members/{member_id}")

    # ========================================================================
    # Categories
    # ========================================================================

    async def list_categories(self, group_id: int) -> list[Category]:
        """Get the categories of a group."""
        categories: list[Category] = await self.request(
            "GET", f"/groups/{group_id}/categories", response_type=list[Category]
        )
        return categories or []

    async def add_category(self, group_id: int, name: str) -> Category:
        """Add a category to a group."""
        body = CategoryRequest(name=name).to_wire()
        category: Category = await self.request(
            "POST",
            f"/groups/{group_id}/categories",
            json=body,
            response_type=Category,
        )
        return category

    async def update_category(
        self, group_id: int, category_id: int, name: str
    ) -> Category:
        """Rename a category."""
        body = CategoryRequest(name=name).to_wire()
        category: Category = await self.request(
            "PUT",
            f"/groups/{group_id}/categories/{category_id}",
            json=body,
            response_type=Category,
        )
        return category

    async def remove_category(self, group_id: int, category_id: int):
        """Remove a category from a group."""
        await self.request("DELETE", f"/groups/{group_id}/categories/{category_id}")
