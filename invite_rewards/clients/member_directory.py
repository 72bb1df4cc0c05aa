# invite_rewards/clients/member_directory.py

import logging
from typing import Any, Callable, Iterable, Protocol

from sqlalchemy import and_, false, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from invite_rewards.core.errors import DirectoryError, NotFound, ValidationError
from invite_rewards.core.filters import (
    OLDEST_FIRST, And, Contains, Equals, FilterExpr, In, IsNotNull, Or, OrderBy,
    ensure_supported, normalize_code, sort_records,
)
from invite_rewards.crud import member as crud_member
from invite_rewards.models.member import Member
from invite_rewards.schemas.member import MemberRead

logger = logging.getLogger(__name__)

# id и created_at неизменяемы
UPDATABLE_FIELDS = frozenset({
    "full_name", "email", "whatsapp", "country", "province", "city", "address",
    "referrer_id", "invite_code", "invite_code_self", "status", "invited_selected", "user_id",
})


def _check_update_fields(fields: dict) -> None:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {sorted(unknown)}", fields=sorted(unknown))


class MemberDirectory(Protocol):
    """Хранилище участников, с которым работают резолвер и координатор."""

    case_insensitive: bool
    max_or_terms: int

    async def get(self, member_id: int) -> MemberRead: ...

    async def find(self, where: FilterExpr, order: OrderBy = OLDEST_FIRST) -> list[MemberRead]: ...

    async def update(self, member_id: int, fields: dict) -> MemberRead: ...

    async def delete(self, member_id: int) -> None: ...


def compile_filter(expr: FilterExpr):
    """Переводит дерево фильтра в SQLAlchemy-условие над моделью Member."""
    if isinstance(expr, Equals):
        column = getattr(Member, expr.field)
        if expr.case_insensitive:
            return func.lower(func.trim(column)) == normalize_code(expr.value)
        if expr.value is None:
            return column.is_(None)
        return column == expr.value
    if isinstance(expr, Contains):
        column = getattr(Member, expr.field)
        return func.lower(column).contains(normalize_code(expr.value), autoescape=True)
    if isinstance(expr, In):
        if not expr.values:
            return false()
        return getattr(Member, expr.field).in_(list(expr.values))
    if isinstance(expr, IsNotNull):
        return getattr(Member, expr.field).isnot(None)
    if isinstance(expr, Or):
        return or_(*[compile_filter(c) for c in expr.clauses]) if expr.clauses else false()
    if isinstance(expr, And):
        return and_(*[compile_filter(c) for c in expr.clauses])
    raise ValidationError(f"Unsupported filter expression: {type(expr).__name__}")


class SqlMemberDirectory:
    """
    Справочник поверх SQLAlchemy. Каждая операция открывает собственную сессию,
    поэтому экземпляр можно держать на весь процесс.
    Таймаут запросов задается на уровне движка (statement_timeout).
    """
    def __init__(
        self,
        session_factory: Callable[[], Session],
        case_insensitive: bool = True,
        max_or_terms: int = 100,
    ):
        self.session_factory = session_factory
        self.case_insensitive = case_insensitive
        self.max_or_terms = max_or_terms

    async def get(self, member_id: int) -> MemberRead:
        try:
            with self.session_factory() as db:
                member = crud_member.get_member_by_id(db, member_id)
                if member is None:
                    raise NotFound(f"Member {member_id} not found", member_id=member_id)
                return MemberRead.model_validate(member)
        except SQLAlchemyError as e:
            logger.error(f"Directory get failed for member {member_id}", exc_info=True)
            raise DirectoryError(f"Failed to load member {member_id}") from e

    async def find(self, where: FilterExpr, order: OrderBy = OLDEST_FIRST) -> list[MemberRead]:
        ensure_supported(where, case_insensitive=self.case_insensitive, max_or_terms=self.max_or_terms)
        column = getattr(Member, order.field)
        order_by = [column.desc(), Member.id.desc()] if order.descending else [column.asc(), Member.id.asc()]
        try:
            with self.session_factory() as db:
                rows = crud_member.find_members(db, compile_filter(where), order_by)
                return [MemberRead.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Directory find failed for filter {where!r}", exc_info=True)
            raise DirectoryError("Failed to query members") from e

    async def update(self, member_id: int, fields: dict) -> MemberRead:
        _check_update_fields(fields)
        try:
            with self.session_factory() as db:
                member = crud_member.get_member_by_id(db, member_id)
                if member is None:
                    raise NotFound(f"Member {member_id} not found", member_id=member_id)
                member = crud_member.update_member_fields(db, member, fields)
                return MemberRead.model_validate(member)
        except SQLAlchemyError as e:
            logger.error(f"Directory update failed for member {member_id}: {fields}", exc_info=True)
            raise DirectoryError(f"Failed to update member {member_id}") from e

    async def delete(self, member_id: int) -> None:
        try:
            with self.session_factory() as db:
                member = crud_member.get_member_by_id(db, member_id)
                if member is None:
                    raise NotFound(f"Member {member_id} not found", member_id=member_id)
                crud_member.delete_member(db, member)
        except SQLAlchemyError as e:
            logger.error(f"Directory delete failed for member {member_id}", exc_info=True)
            raise DirectoryError(f"Failed to delete member {member_id}") from e


class InMemoryMemberDirectory:
    """
    Справочник в памяти процесса: вычисляет те же выражения через matches().
    Используется в тестах и для локальной отладки без БД.
    """
    def __init__(
        self,
        members: Iterable[MemberRead] = (),
        case_insensitive: bool = True,
        max_or_terms: int = 100,
    ):
        self._records: dict[int, MemberRead] = {}
        self.case_insensitive = case_insensitive
        self.max_or_terms = max_or_terms
        for member in members:
            self.add(member)

    def add(self, member: MemberRead) -> MemberRead:
        self._records[member.id] = member.model_copy()
        return member

    async def get(self, member_id: int) -> MemberRead:
        record = self._records.get(member_id)
        if record is None:
            raise NotFound(f"Member {member_id} not found", member_id=member_id)
        return record.model_copy()

    async def find(self, where: FilterExpr, order: OrderBy = OLDEST_FIRST) -> list[MemberRead]:
        ensure_supported(where, case_insensitive=self.case_insensitive, max_or_terms=self.max_or_terms)
        matched = [r.model_copy() for r in self._records.values() if where.matches(r)]
        return sort_records(matched, order)

    async def update(self, member_id: int, fields: dict[str, Any]) -> MemberRead:
        _check_update_fields(fields)
        record = self._records.get(member_id)
        if record is None:
            raise NotFound(f"Member {member_id} not found", member_id=member_id)
        updated = record.model_copy(update=fields)
        self._records[member_id] = updated
        return updated.model_copy()

    async def delete(self, member_id: int) -> None:
        if self._records.pop(member_id, None) is None:
            raise NotFound(f"Member {member_id} not found", member_id=member_id)
