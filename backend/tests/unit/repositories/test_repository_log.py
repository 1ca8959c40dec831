"""
Unit tests for LogRepository, including its on-demand write failure.
"""

from __future__ import annotations

import pytest
from membertx.models import LogMessage
from membertx.repositories import LogRepository
from membertx.services._shared.errors import LogPersistenceError
from tests.factories.log_message import LogMessageFactory

MARKER = "logException"


class TestLogRepository:
    def test_save_and_find(self, session):
        repo = LogRepository(session, failure_marker=MARKER)
        entry = LogMessage(message="hello")

        repo.save(entry)

        assert repo.find("hello") is entry

    def test_marker_rejects_the_write(self, session):
        """
        GIVEN a repository configured with a failure marker
        WHEN a message containing the marker is saved
        THEN LogPersistenceError is raised after the row was staged.
        """
        repo = LogRepository(session, failure_marker=MARKER)

        with pytest.raises(LogPersistenceError) as excinfo:
            repo.save(LogMessage(message=f"{MARKER}_user"))

        assert excinfo.value.log_message == f"{MARKER}_user"
        assert len(session.new) == 1

    def test_without_marker_everything_is_accepted(self, session):
        repo = LogRepository(session)

        repo.save(LogMessage(message=f"{MARKER}_user"))

        assert repo.find(f"{MARKER}_user") is not None

    def test_list_filters_by_message(self, session):
        LogMessageFactory(message="wanted")
        LogMessageFactory.create_batch(3)

        entries = LogRepository(session).list(filters={"message": "wanted"})

        assert [e.message for e in entries] == ["wanted"]
