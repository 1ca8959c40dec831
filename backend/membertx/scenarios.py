"""
Canonical propagation scenarios.

Each :class:`Scenario` fixes a :class:`JoinPolicy`, the join variant, whether
the log write fails, and what must be observed afterwards: the error the
caller sees and which of the two rows survived. :func:`run_scenario` executes
one against a live database and reports whether reality matched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import uuid4

from membertx.repositories.log import LogRepository
from membertx.repositories.member import MemberRepository
from membertx.services._shared.errors import LogPersistenceError
from membertx.services.members.join import JoinPolicy, MemberJoinService
from membertx.tx import Propagation, TransactionManager, UnexpectedRollbackError

log = logging.getLogger(__name__)

REQUIRED = Propagation.REQUIRED
REQUIRES_NEW = Propagation.REQUIRES_NEW


@dataclass(frozen=True, slots=True)
class Scenario:
    """
    One propagation experiment and its expected result.

    :param name: Stable identifier.
    :param description: One-line summary.
    :param policy: Propagation of use case, member write and log write.
    :param recover: Run ``join_v2`` (catch the log failure) instead of ``join_v1``.
    :param fail_log: Make the log write fail.
    :param expected_error: Exception type the caller must see, or ``None``.
    :param member_persisted: Whether the member row must survive.
    :param log_persisted: Whether the log row must survive.
    """

    name: str
    description: str
    policy: JoinPolicy
    recover: bool
    fail_log: bool
    expected_error: type[Exception] | None
    member_persisted: bool
    log_persisted: bool

    def username(self, failure_marker: str) -> str:
        """Return a fresh username, carrying the failure marker when needed."""
        base = f"{self.name}_{uuid4().hex[:8]}"
        return f"{failure_marker}_{base}" if self.fail_log else base


@dataclass(frozen=True, slots=True)
class ScenarioReport:
    """What happened when a scenario ran."""

    scenario: str
    username: str
    error: str | None
    member_persisted: bool
    log_persisted: bool
    passed: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "scenario": self.scenario,
            "username": self.username,
            "error": self.error,
            "member_persisted": self.member_persisted,
            "log_persisted": self.log_persisted,
            "passed": self.passed,
        }


SCENARIOS: tuple[Scenario, ...] = (
    Scenario(
        name="outer_tx_off_success",
        description="No use-case transaction; member and log each commit on their own.",
        policy=JoinPolicy(service=None, member_repository=REQUIRED, log_repository=REQUIRED),
        recover=False,
        fail_log=False,
        expected_error=None,
        member_persisted=True,
        log_persisted=True,
    ),
    Scenario(
        name="outer_tx_off_fail",
        description="No use-case transaction; the log write fails and rolls back alone.",
        policy=JoinPolicy(service=None, member_repository=REQUIRED, log_repository=REQUIRED),
        recover=False,
        fail_log=True,
        expected_error=LogPersistenceError,
        member_persisted=True,
        log_persisted=False,
    ),
    Scenario(
        name="single_tx",
        description="One use-case transaction; writes have no boundary of their own.",
        policy=JoinPolicy(service=REQUIRED, member_repository=None, log_repository=None),
        recover=False,
        fail_log=False,
        expected_error=None,
        member_persisted=True,
        log_persisted=True,
    ),
    Scenario(
        name="outer_tx_on_success",
        description="Both writes join the use-case transaction and commit with it.",
        policy=JoinPolicy(service=REQUIRED, member_repository=REQUIRED, log_repository=REQUIRED),
        recover=False,
        fail_log=False,
        expected_error=None,
        member_persisted=True,
        log_persisted=True,
    ),
    Scenario(
        name="outer_tx_on_fail",
        description="The joined log write fails; the whole transaction rolls back.",
        policy=JoinPolicy(service=REQUIRED, member_repository=REQUIRED, log_repository=REQUIRED),
        recover=False,
        fail_log=True,
        expected_error=LogPersistenceError,
        member_persisted=False,
        log_persisted=False,
    ),
    Scenario(
        name="recover_exception_fail",
        description="The use case swallows a joined log failure; the commit still fails.",
        policy=JoinPolicy(service=REQUIRED, member_repository=REQUIRED, log_repository=REQUIRED),
        recover=True,
        fail_log=True,
        expected_error=UnexpectedRollbackError,
        member_persisted=False,
        log_persisted=False,
    ),
    Scenario(
        name="recover_exception_success",
        description="The failing log write is isolated; the member survives.",
        policy=JoinPolicy(
            service=REQUIRED, member_repository=REQUIRED, log_repository=REQUIRES_NEW
        ),
        recover=True,
        fail_log=True,
        expected_error=None,
        member_persisted=True,
        log_persisted=False,
    ),
)

SCENARIOS_BY_NAME: dict[str, Scenario] = {s.name: s for s in SCENARIOS}


def get_scenario(name: str) -> Scenario:
    """Return the scenario called ``name``.

    :raises KeyError: If no scenario has that name.
    """
    try:
        return SCENARIOS_BY_NAME[name]
    except KeyError:
        raise KeyError(f"Unknown scenario '{name}'") from None


def run_scenario(
    scenario: Scenario,
    transactions: TransactionManager,
    *,
    failure_marker: str,
) -> ScenarioReport:
    """
    Execute ``scenario`` and compare the observed result with its expectation.

    Errors raised by the join are captured in the report, not propagated.

    :param scenario: Scenario to execute.
    :type scenario: Scenario
    :param transactions: Resolver bound to the target database.
    :type transactions: TransactionManager
    :param failure_marker: Marker the log repository rejects.
    :type failure_marker: str
    :returns: Observed result.
    :rtype: ScenarioReport
    """
    username = scenario.username(failure_marker)
    service = MemberJoinService(
        policy=scenario.policy,
        failure_marker=failure_marker,
        transactions=transactions,
    )
    join = service.join_v2 if scenario.recover else service.join_v1

    raised: Exception | None = None
    try:
        join(username)
    except (LogPersistenceError, UnexpectedRollbackError) as exc:
        raised = exc

    member_persisted, log_persisted = transactions.participate(
        "scenario.verify",
        lambda ctx: (
            MemberRepository(ctx.session).find(username) is not None,
            LogRepository(ctx.session).find(username) is not None,
        ),
    )

    error_matches = (
        raised is None
        if scenario.expected_error is None
        else isinstance(raised, scenario.expected_error)
    )
    passed = (
        error_matches
        and member_persisted == scenario.member_persisted
        and log_persisted == scenario.log_persisted
    )
    report = ScenarioReport(
        scenario=scenario.name,
        username=username,
        error=type(raised).__name__ if raised is not None else None,
        member_persisted=member_persisted,
        log_persisted=log_persisted,
        passed=passed,
    )
    log.info(
        "scenario.finished",
        extra={"scenario": scenario.name, "outcome": "passed" if passed else "failed"},
    )
    return report
