from .join import JoinPolicy, JoinResult, MemberJoinService
from .service import MemberService

__all__ = ["JoinPolicy", "JoinResult", "MemberJoinService", "MemberService"]
