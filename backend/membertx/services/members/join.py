"""
MemberJoinService
=================

The propagation experiment: joining writes a :class:`Member` and then a
:class:`LogMessage` carrying the same text. Each of the three components (the
use case, the member write, the log write) has its own propagation, taken
from a :class:`JoinPolicy`:

- ``REQUIRED`` / ``REQUIRES_NEW``: the component is its own unit of work.
- ``None``: no boundary of its own. The use case then simply passes its
  caller's context through (possibly none); a write component runs inside the
  caller's context and fails with ``TransactionRequiredError`` without one.

``join_v1`` lets a log failure escape. ``join_v2`` catches it and carries on,
which only keeps the member when the log write ran in an isolated
(``REQUIRES_NEW``) transaction; otherwise the shared transaction is already
doomed and the commit raises ``UnexpectedRollbackError``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from membertx.core.config import parse_propagation
from membertx.models.log_message import LogMessage
from membertx.models.member import Member
from membertx.repositories.log import LogRepository
from membertx.repositories.member import MemberRepository
from membertx.services._shared.base import BaseService, ServiceContext
from membertx.services._shared.errors import DuplicateMemberError, LogPersistenceError
from membertx.tx import Propagation, TransactionContext, TransactionManager

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class JoinPolicy:
    """
    Propagation of each component of the join use case.

    :param service: Boundary of the use case itself.
    :type service: Propagation | None
    :param member_repository: Boundary of the member write.
    :type member_repository: Propagation | None
    :param log_repository: Boundary of the log write.
    :type log_repository: Propagation | None
    """

    service: Propagation | None = Propagation.REQUIRED
    member_repository: Propagation | None = Propagation.REQUIRED
    log_repository: Propagation | None = Propagation.REQUIRES_NEW

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> JoinPolicy:
        """Build a policy from ``*_PROPAGATION`` settings.

        :raises ValueError: If a setting names an unknown propagation.
        """
        defaults = cls()
        return cls(
            service=parse_propagation(config.get("JOIN_SERVICE_PROPAGATION", defaults.service)),
            member_repository=parse_propagation(
                config.get("MEMBER_REPOSITORY_PROPAGATION", defaults.member_repository)
            ),
            log_repository=parse_propagation(
                config.get("LOG_REPOSITORY_PROPAGATION", defaults.log_repository)
            ),
        )

    def describe(self) -> dict[str, str]:
        """Return a display mapping, ``"none"`` for non-transactional components."""
        return {
            "service": self.service.value if self.service else "none",
            "member_repository": (
                self.member_repository.value if self.member_repository else "none"
            ),
            "log_repository": self.log_repository.value if self.log_repository else "none",
        }


@dataclass(frozen=True, slots=True)
class JoinResult:
    """
    Outcome of a join as seen by its caller.

    :param member: Member written by the join.
    :type member: Member
    :param log_saved: ``False`` when ``join_v2`` recovered from a log failure.
    :type log_saved: bool
    """

    member: Member
    log_saved: bool


class MemberJoinService(BaseService):
    """Run the member + log join under a configurable :class:`JoinPolicy`."""

    def __init__(
        self,
        *,
        policy: JoinPolicy | None = None,
        failure_marker: str | None = None,
        transactions: TransactionManager | None = None,
        ctx: ServiceContext | None = None,
    ) -> None:
        super().__init__(transactions=transactions, ctx=ctx)
        self.policy = policy or JoinPolicy()
        self.failure_marker = failure_marker

    # ------------------------------------------------------------------ #
    # Use cases
    # ------------------------------------------------------------------ #

    def join_v1(self, username: str, *, tx: TransactionContext | None = None) -> JoinResult:
        """
        Save the member, then the log entry. Any failure propagates.

        :raises LogPersistenceError: If the log write fails.
        :raises UnexpectedRollbackError: If a shared transaction was doomed.
        """
        username = username.strip()

        def _perform(ctx: TransactionContext | None) -> JoinResult:
            member = self._save_member(username, ctx)
            self._save_log(username, ctx)
            return JoinResult(member=member, log_saved=True)

        return self._as_use_case("MemberJoinService.join_v1", _perform, tx)

    def join_v2(self, username: str, *, tx: TransactionContext | None = None) -> JoinResult:
        """
        Save the member, then try the log entry and recover from its failure.

        :raises UnexpectedRollbackError: If the failed log write shared the
            use case's transaction.
        """
        username = username.strip()

        def _perform(ctx: TransactionContext | None) -> JoinResult:
            member = self._save_member(username, ctx)
            try:
                self._save_log(username, ctx)
            except LogPersistenceError:
                log.info(
                    "join.log_failed_recovered",
                    extra=self.log_extra(ctx, "MemberJoinService.join_v2"),
                )
                return JoinResult(member=member, log_saved=False)
            return JoinResult(member=member, log_saved=True)

        return self._as_use_case("MemberJoinService.join_v2", _perform, tx)

    # ------------------------------------------------------------------ #
    # Components
    # ------------------------------------------------------------------ #

    def _as_use_case(
        self,
        name: str,
        body: Callable[[TransactionContext | None], JoinResult],
        tx: TransactionContext | None,
    ) -> JoinResult:
        if self.policy.service is None:
            return body(tx)
        return self.transactions.participate(name, body, tx, self.policy.service)

    def _save_member(self, username: str, tx: TransactionContext | None) -> Member:
        member = Member(username=username)

        def _write(ctx: TransactionContext) -> Member:
            members = MemberRepository(ctx.session)
            if members.find(member.username) is not None:
                raise DuplicateMemberError(member.username)
            members.save(member)
            return member

        return self.transactions.participate(
            "MemberRepository.save", _write, tx, self.policy.member_repository
        )

    def _save_log(self, message: str, tx: TransactionContext | None) -> LogMessage:
        entry = LogMessage(message=message)

        def _write(ctx: TransactionContext) -> LogMessage:
            LogRepository(ctx.session, failure_marker=self.failure_marker).save(entry)
            return entry

        return self.transactions.participate(
            "LogRepository.save", _write, tx, self.policy.log_repository
        )
