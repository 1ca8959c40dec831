"""
Unit tests for MemberJoinService under every propagation scenario.
"""

from __future__ import annotations

import logging

import pytest
from membertx.models import LogMessage, Member
from membertx.scenarios import SCENARIOS, run_scenario
from membertx.services._shared.base import ServiceContext
from membertx.services._shared.errors import DuplicateMemberError, LogPersistenceError
from membertx.services.members import JoinPolicy, MemberJoinService
from membertx.tx import Propagation, TransactionRequiredError, UnexpectedRollbackError
from tests.factories.member import MemberFactory
from tests.helpers.db import count_rows, log_exists, member_exists

MARKER = "logException"
REQUIRED = Propagation.REQUIRED
REQUIRES_NEW = Propagation.REQUIRES_NEW


def make_service(transactions, policy):
    return MemberJoinService(policy=policy, failure_marker=MARKER, transactions=transactions)


@pytest.mark.parametrize("scenario", SCENARIOS, ids=lambda s: s.name)
def test_scenario_matches_expectation(transactions, scenario):
    """
    GIVEN one canonical propagation scenario
    WHEN the join runs against the database
    THEN the caller-visible error and the surviving rows match its expectation.
    """
    report = run_scenario(scenario, transactions, failure_marker=MARKER)

    assert report.passed, report.to_dict()
    expected_error = scenario.expected_error.__name__ if scenario.expected_error else None
    assert report.error == expected_error


class TestJoinWithoutUseCaseTransaction:
    policy = JoinPolicy(service=None, member_repository=REQUIRED, log_repository=REQUIRED)

    def test_each_write_commits_on_its_own(self, transactions):
        result = make_service(transactions, self.policy).join_v1("alice")

        assert result.log_saved is True
        assert member_exists("alice") and log_exists("alice")

    def test_log_failure_keeps_the_member(self, transactions):
        username = f"{MARKER}_bob"

        with pytest.raises(LogPersistenceError):
            make_service(transactions, self.policy).join_v1(username)

        assert member_exists(username)
        assert not log_exists(username)

    def test_non_transactional_writes_need_a_transaction(self, transactions):
        """
        GIVEN neither the use case nor its writes declare a boundary
        WHEN the join runs without a caller context
        THEN there is no transaction to write through and nothing is saved.
        """
        policy = JoinPolicy(service=None, member_repository=None, log_repository=None)

        with pytest.raises(TransactionRequiredError):
            make_service(transactions, policy).join_v1("carol")
        assert count_rows(Member) == 0


class TestJoinInsideOneTransaction:
    def test_single_transaction_commits_both_rows(self, transactions):
        policy = JoinPolicy(service=REQUIRED, member_repository=None, log_repository=None)

        make_service(transactions, policy).join_v1("dave")

        assert member_exists("dave") and log_exists("dave")

    def test_single_transaction_log_failure_rolls_back_the_member(self, transactions):
        policy = JoinPolicy(service=REQUIRED, member_repository=None, log_repository=None)
        username = f"{MARKER}_erin"

        with pytest.raises(LogPersistenceError):
            make_service(transactions, policy).join_v1(username)

        assert count_rows(Member) == 0
        assert count_rows(LogMessage) == 0

    def test_recovering_with_a_joined_log_write_is_not_enough(self, transactions):
        policy = JoinPolicy(service=REQUIRED, member_repository=REQUIRED, log_repository=REQUIRED)
        username = f"{MARKER}_frank"

        with pytest.raises(UnexpectedRollbackError) as excinfo:
            make_service(transactions, policy).join_v2(username)

        assert isinstance(excinfo.value.cause, LogPersistenceError)
        assert not member_exists(username)

    def test_recovering_with_an_isolated_log_write_keeps_the_member(self, transactions):
        username = f"{MARKER}_grace"

        result = make_service(transactions, JoinPolicy()).join_v2(username)

        assert result.log_saved is False
        assert result.member.username == username
        assert member_exists(username)
        assert not log_exists(username)

    def test_join_v2_without_failure_saves_both(self, transactions):
        result = make_service(transactions, JoinPolicy()).join_v2("heidi")

        assert result.log_saved is True
        assert member_exists("heidi") and log_exists("heidi")

    def test_use_case_joins_a_caller_context(self, transactions):
        """
        GIVEN a caller that already runs a transaction
        WHEN the join runs with ``tx=`` that context
        THEN the member commits only when the caller does.
        """
        service = make_service(transactions, JoinPolicy())
        seen = {}

        def caller(ctx):
            service.join_v1("ivan", tx=ctx)
            seen["before_commit"] = member_exists("ivan")

        transactions.participate("caller", caller)

        assert seen["before_commit"] is False
        assert member_exists("ivan")
        assert log_exists("ivan")


    def test_username_is_trimmed_for_both_rows(self, transactions):
        result = make_service(transactions, JoinPolicy()).join_v1("  kim  ")

        assert result.member.username == "kim"
        assert member_exists("kim") and log_exists("kim")
        assert not log_exists("  kim  ")

    def test_existing_username_is_rejected_before_any_write(self, transactions):
        """
        GIVEN a member already registered under a username
        WHEN the join runs again for that username
        THEN it fails with a duplicate error and no log entry is written.
        """
        MemberFactory(username="leo")

        with pytest.raises(DuplicateMemberError):
            make_service(transactions, JoinPolicy()).join_v1(" leo ")

        assert count_rows(Member) == 1
        assert count_rows(LogMessage) == 0

    def test_recovered_log_failure_carries_request_id(self, transactions, caplog):
        service = MemberJoinService(
            failure_marker=MARKER,
            transactions=transactions,
            ctx=ServiceContext(request_id="req-2"),
        )

        with caplog.at_level(logging.INFO):
            service.join_v2(f"{MARKER}_mia")

        (record,) = [r for r in caplog.records if r.getMessage() == "join.log_failed_recovered"]
        assert record.request_id == "req-2"
        assert record.unit == "MemberJoinService.join_v2"

class TestJoinPolicy:
    def test_defaults(self):
        policy = JoinPolicy()

        assert policy.describe() == {
            "service": "required",
            "member_repository": "required",
            "log_repository": "requires_new",
        }

    def test_from_config(self):
        policy = JoinPolicy.from_config(
            {
                "JOIN_SERVICE_PROPAGATION": "none",
                "MEMBER_REPOSITORY_PROPAGATION": "requires-new",
            }
        )

        assert policy.service is None
        assert policy.member_repository is REQUIRES_NEW
        assert policy.log_repository is REQUIRES_NEW

    def test_from_config_rejects_unknown_modes(self):
        with pytest.raises(ValueError):
            JoinPolicy.from_config({"LOG_REPOSITORY_PROPAGATION": "NESTED"})
