"""Factory Boy definition for :class:`membertx.models.member.Member`."""

from __future__ import annotations

from membertx.models.member import Member

import factory
from tests.factories import BaseFactory


class MemberFactory(BaseFactory):
    """Build persisted :class:`Member` instances with unique usernames."""

    class Meta:
        model = Member

    username = factory.Sequence(lambda n: f"member{n}")
