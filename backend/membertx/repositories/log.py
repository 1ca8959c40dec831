"""Log message repository with configurable write failures."""

from __future__ import annotations

from sqlalchemy.orm import Session

from membertx.models.log_message import LogMessage
from membertx.repositories.base import BaseRepository
from membertx.services._shared.errors import LogPersistenceError


class LogRepository(BaseRepository[LogMessage]):
    """Persistence-only repository for :class:`LogMessage`.

    Any message containing ``failure_marker`` is staged and then rejected with
    :class:`LogPersistenceError`, the same way a constraint or downstream
    failure would surface after the write was attempted. The propagation
    experiments use this to fail the log write on demand.

    :param session: Session of the active transaction context.
    :type session: :class:`sqlalchemy.orm.Session`
    :param failure_marker: Substring that triggers the failure; ``None`` or
        empty disables it.
    :type failure_marker: str | None
    """

    model = LogMessage

    def __init__(self, session: Session, *, failure_marker: str | None = None) -> None:
        super().__init__(session)
        self.failure_marker = failure_marker

    def _sortable_fields(self):
        return {"message": LogMessage.message, "created_at": LogMessage.created_at}

    def _filterable_fields(self):
        return {"id": LogMessage.id, "message": LogMessage.message}

    def save(self, instance: LogMessage) -> str:
        """Stage a log message.

        :raises LogPersistenceError: If the message contains the failure marker.
        """
        log_id = super().save(instance)
        if self.failure_marker and self.failure_marker in instance.message:
            raise LogPersistenceError(instance.message)
        return log_id

    def find(self, message: str) -> LogMessage | None:
        """Return the first log entry with exactly ``message``, if any."""
        return self.find_one(message=message)
