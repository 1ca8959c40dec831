"""Member repository."""

from __future__ import annotations

from membertx.models.member import Member
from membertx.repositories.base import BaseRepository


class MemberRepository(BaseRepository[Member]):
    """Persistence-only repository for :class:`Member`."""

    model = Member

    def _sortable_fields(self):
        return {
            "id": Member.id,
            "username": Member.username,
            "created_at": Member.created_at,
        }

    def _filterable_fields(self):
        return {"id": Member.id, "username": Member.username}

    def find(self, username: str) -> Member | None:
        """Return the member registered under ``username``, if any.

        :param username: Username to look up (surrounding whitespace ignored).
        :type username: str
        :returns: Member or ``None``.
        :rtype: Member | None
        """
        return self.find_one(username=username.strip())

    def find_by_username(self, username: str) -> list[Member]:
        """Return every persisted member with ``username`` (zero or one row)."""
        return self.list(filters={"username": username.strip()})
