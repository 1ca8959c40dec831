"""Generic repository base and query utilities for SQLAlchemy 2.x.

This module centralizes persistence-only concerns shared by all repositories:
- ``save`` stages a row and hands back its application-generated id.
- Lookups see rows staged earlier in the same transaction context.
- Safe sorting with a whitelist mapping (prevents SQL injection).
- Deterministic pagination (adds primary-key tiebreaker).
- No business logic and no commit/rollback; transaction contexts own that.

Design decisions
----------------
* Repositories are bound to the session of one transaction context and never
  call ``commit``/``rollback``/``flush``; the context flushes and commits when
  its owning unit of work finishes.
* Sessions run with ``autoflush=False``, so staged rows are matched in Python
  (``session.new``) before the database is queried.
* Sorting and filtering are opt-in per aggregate via whitelist mappings.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from membertx.models.base import new_id

E = TypeVar("E")  # SQLAlchemy mapped entity type


# ------------------------------- Pagination ----------------------------------


@dataclass(slots=True)
class Pagination:
    """Pagination input parameters.

    :param page: 1-based page number.
    :type page: int
    :param limit: Page size.
    :type limit: int
    :param sort: Public sort tokens (e.g., ``["-created_at", "username"]``).
    :type sort: list[str]
    """

    page: int
    limit: int
    sort: list[str]


@dataclass(slots=True)
class Page(Generic[E]):
    """Result page with metadata."""

    items: Sequence[E]
    total: int
    page: int
    limit: int


# ----------------------------- Sorting utilities -----------------------------


def parse_sort_tokens(raw: Iterable[str]) -> list[tuple[str, bool]]:
    """Parse public sort tokens into ``(field, is_desc)`` tuples."""
    parsed: list[tuple[str, bool]] = []
    for token in raw:
        is_desc = token.startswith("-")
        field = (token[1:] if is_desc else token).strip()
        if field:
            parsed.append((field, is_desc))
    return parsed


def _apply_sorting(
    stmt: Select[Any],
    sortable_fields: Mapping[str, InstrumentedAttribute[Any]],
    tokens: Iterable[str],
    *,
    pk_attr: InstrumentedAttribute[Any] | None,
) -> Select[Any]:
    """Apply safe ``ORDER BY`` clauses based on a whitelist mapping.

    Unknown sort tokens are ignored silently. The primary key is always
    appended as a final ascending tiebreaker to stabilize pagination.
    """
    orders: list[Any] = []
    for field, is_desc in parse_sort_tokens(tokens):
        col = sortable_fields.get(field)
        if isinstance(col, InstrumentedAttribute):
            orders.append(col.desc() if is_desc else col.asc())

    if orders:
        stmt = stmt.order_by(*orders)
    if pk_attr is not None:
        stmt = stmt.order_by(pk_attr.asc())
    return stmt


def paginate_select(
    session: Session,
    stmt: Select[Any],
    *,
    page: int,
    limit: int,
    with_total: bool = True,
) -> tuple[list[Any], int]:
    """Execute a select with pagination and an optional total count.

    :returns: Tuple of ``(items, total)`` where ``total`` is 0 when ``with_total=False``.
    :rtype: tuple[list[Any], int]
    """
    page = max(int(page), 1)
    limit = max(int(limit), 1)

    total = 0
    if with_total:
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = int(session.execute(count_stmt).scalar_one())

    offset = (page - 1) * limit
    items = list(session.execute(stmt.limit(limit).offset(offset)).scalars().all())
    return items, total


# ------------------------------ Base repository ------------------------------


class BaseRepository(Generic[E]):
    """Persistence-only repository for a single aggregate.

    Subclasses MUST define ``model`` and MAY override ``_sortable_fields`` and
    ``_filterable_fields``.

    This class NEVER opens, commits or rolls back transactions.
    """

    #: SQLAlchemy mapped model (must be set by subclasses)
    model: type[E]

    def __init__(self, session: Session) -> None:
        """Bind the repository to the session of one transaction context.

        :param session: Session owned by the active transaction context.
        :type session: :class:`sqlalchemy.orm.Session`
        """
        self.session = session

    # ------------------------------ Extensibility ----------------------------

    def _pk_attr(self) -> InstrumentedAttribute[Any] | None:
        return getattr(self.model, "id", None)

    def _sortable_fields(self) -> Mapping[str, InstrumentedAttribute[Any]]:
        """Whitelist mapping of public sort keys to model attributes."""
        return {}

    def _filterable_fields(self) -> Mapping[str, InstrumentedAttribute[Any]]:
        """Whitelist mapping of equality-filterable keys to model attributes.

        Unknown keys passed to lookups are ignored.
        """
        return {}

    # ------------------------------ Internals --------------------------------

    def _allowed_filters(self, filters: Mapping[str, Any] | None) -> dict[str, Any]:
        allowed = self._filterable_fields()
        return {k: v for k, v in (filters or {}).items() if k in allowed and v is not None}

    def _apply_equality_filters(self, stmt: Select[Any], filters: Mapping[str, Any]) -> Select[Any]:
        allowed = self._filterable_fields()
        clauses = [allowed[k] == v for k, v in filters.items()]
        return stmt.where(and_(*clauses)) if clauses else stmt

    def _pending(self, filters: Mapping[str, Any]) -> list[E]:
        """Return rows staged in this session that match ``filters``."""
        return [
            cast(E, obj)
            for obj in self.session.new
            if isinstance(obj, self.model)
            and all(getattr(obj, key) == value for key, value in filters.items())
        ]

    # --------------------------------- Writes --------------------------------

    def save(self, instance: E) -> str:
        """Stage ``instance`` in the current transaction context.

        The row becomes durable only when the owning context commits.

        :param instance: New entity instance.
        :type instance: E
        :returns: The (possibly freshly generated) primary key.
        :rtype: str
        """
        if getattr(instance, "id", None) is None:
            instance.id = new_id()  # type: ignore[attr-defined]
        self.session.add(instance)
        return cast(str, instance.id)  # type: ignore[attr-defined]

    # --------------------------------- Reads ---------------------------------

    def get(self, entity_id: str) -> E | None:
        """Retrieve a single entity by primary key, staged rows included."""
        staged = self._pending({"id": entity_id})
        if staged:
            return staged[0]
        return cast(E | None, self.session.get(self.model, entity_id))

    def find_one(self, **filters: Any) -> E | None:
        """Find a single entity by whitelisted equality filters.

        Rows staged in the current context win over persisted ones.
        Returns ``None`` when no usable filter is left, rather than an
        arbitrary row.

        :returns: Entity or ``None``.
        :rtype: E | None
        """
        applied = self._allowed_filters(filters)
        if not applied:
            return None
        staged = self._pending(applied)
        if staged:
            return staged[0]
        stmt = self._apply_equality_filters(select(self.model), applied)
        return cast(E | None, self.session.execute(stmt.limit(1)).scalars().first())

    def list(
        self,
        *,
        filters: Mapping[str, Any] | None = None,
        sort: Iterable[str] | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[E]:
        """List persisted entities with optional filtering and sorting."""
        stmt: Select[Any] = select(self.model)
        stmt = self._apply_equality_filters(stmt, self._allowed_filters(filters))
        stmt = _apply_sorting(stmt, self._sortable_fields(), sort or [], pk_attr=self._pk_attr())
        if limit is not None:
            stmt = stmt.limit(int(limit))
        if offset is not None:
            stmt = stmt.offset(int(offset))
        return cast(list[E], list(self.session.execute(stmt).scalars().all()))

    def paginate(
        self,
        pagination: Pagination,
        *,
        filters: Mapping[str, Any] | None = None,
        with_total: bool = True,
    ) -> Page[E]:
        """Paginate persisted entities with stable sorting and optional total."""
        stmt: Select[Any] = select(self.model)
        stmt = self._apply_equality_filters(stmt, self._allowed_filters(filters))
        stmt = _apply_sorting(
            stmt, self._sortable_fields(), pagination.sort, pk_attr=self._pk_attr()
        )
        items, total = paginate_select(
            self.session,
            stmt,
            page=pagination.page,
            limit=pagination.limit,
            with_total=with_total,
        )
        return Page(
            items=cast(list[E], items),
            total=total,
            page=max(pagination.page, 1),
            limit=max(pagination.limit, 1),
        )
