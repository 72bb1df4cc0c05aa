# invite_rewards/crud/member.py
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from invite_rewards.models.member import Member


def get_member_by_id(db: Session, member_id: int) -> Member | None:
    """Получает участника по первичному ключу."""
    return db.query(Member).filter(Member.id == member_id).first()


def get_member_by_invite_code_self(db: Session, code: str) -> Member | None:
    """Ищет владельца персонального кода без учета регистра и пробелов по краям."""
    normalized = code.strip().lower()
    if not normalized:
        return None
    return db.query(Member).filter(func.lower(Member.invite_code_self) == normalized).first()


def create_member(db: Session, **fields: Any) -> Member:
    """
    Создает участника. IntegrityError (коллизия кода) пробрасывается наверх,
    сессия при этом откатывается.
    """
    db_member = Member(**fields)
    db.add(db_member)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(db_member)
    return db_member


def find_members(db: Session, criterion, order_by: list) -> list[Member]:
    """Выполняет готовое SQL-условие (см. clients/member_directory.py)."""
    return db.query(Member).filter(criterion).order_by(*order_by).all()


def update_member_fields(db: Session, member: Member, fields: dict) -> Member:
    for key, value in fields.items():
        setattr(member, key, value)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(member)
    return member


def delete_member(db: Session, member: Member) -> None:
    db.delete(member)
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


def _apply_filters(query, status: str | None = None, search: str | None = None):
    if status and status != 'all':
        query = query.filter(Member.status == status)
    else:
        # Удаленные в общий список не попадают
        query = query.filter(Member.status != 'deleted')

    if search:
        search_query = f"%{search.strip()}%"
        search_filter = [
            Member.full_name.ilike(search_query),
            Member.invite_code.ilike(search_query),
            Member.invite_code_self.ilike(search_query),
            Member.email.ilike(search_query),
        ]
        if search.strip().isdigit():
            search_filter.append(Member.id == int(search.strip()))
        query = query.filter(or_(*search_filter))
    return query


def get_members(
    db: Session,
    skip: int = 0,
    limit: int = 20,
    status: str | None = None,
    search: str | None = None,
) -> list[Member]:
    """
    Получает пагинированный список участников с фильтром по статусу и поиском.
    """
    query = _apply_filters(db.query(Member), status=status, search=search)
    return query.order_by(Member.created_at.desc(), Member.id.desc()).offset(skip).limit(limit).all()


def count_members_with_filters(db: Session, status: str | None = None, search: str | None = None) -> int:
    """Подсчитывает количество участников с учетом тех же фильтров."""
    query = _apply_filters(db.query(func.count(Member.id)), status=status, search=search)
    return query.scalar()
