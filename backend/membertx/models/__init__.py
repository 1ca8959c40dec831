from membertx.models.log_message import LogMessage
from membertx.models.member import Member

__all__ = [
    "LogMessage",
    "Member",
]
