"""
MemberService
=============

Member registration and lookups. Every public method is a ``REQUIRED`` unit
of work: called on its own it opens and commits a transaction, called with
``tx=`` it joins the caller's.
"""

from __future__ import annotations

import logging

from membertx.models.log_message import LogMessage
from membertx.models.member import Member
from membertx.repositories.base import Page, Pagination
from membertx.repositories.log import LogRepository
from membertx.repositories.member import MemberRepository
from membertx.services._shared.base import BaseService
from membertx.services._shared.errors import DuplicateMemberError, NotFoundError
from membertx.tx import TransactionContext, transactional

log = logging.getLogger(__name__)


class MemberService(BaseService):
    """Register members and read members and their log entries."""

    @transactional(name="MemberService.join")
    def join(self, username: str, *, tx: TransactionContext) -> Member:
        """
        Register a new member.

        :param username: Desired username; surrounding whitespace is ignored.
        :type username: str
        :returns: The staged member; durable once the owning context commits.
        :rtype: Member
        :raises DuplicateMemberError: If the username is already registered.
        """
        members = MemberRepository(tx.session)
        if members.find(username) is not None:
            raise DuplicateMemberError(username.strip())
        member = Member(username=username)
        members.save(member)
        log.info("member.joined", extra=self.log_extra(tx, "MemberService.join"))
        return member

    @transactional(name="MemberService.find_members")
    def find_members(
        self,
        pagination: Pagination,
        *,
        username: str | None = None,
        tx: TransactionContext,
    ) -> Page[Member]:
        """Return a page of persisted members, optionally filtered by username."""
        return MemberRepository(tx.session).paginate(
            pagination, filters={"username": username}
        )

    @transactional(name="MemberService.find_one")
    def find_one(self, member_id: str, *, tx: TransactionContext) -> Member:
        """
        Return one member by id.

        :raises NotFoundError: If no member has this id.
        """
        member = MemberRepository(tx.session).get(member_id)
        if member is None:
            raise NotFoundError("Member", member_id)
        return member

    @transactional(name="MemberService.find_logs")
    def find_logs(
        self, *, message: str | None = None, tx: TransactionContext
    ) -> list[LogMessage]:
        """Return persisted log messages, optionally only those equal to ``message``."""
        return LogRepository(tx.session).list(
            filters={"message": message}, sort=["created_at"]
        )
