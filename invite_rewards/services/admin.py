# invite_rewards/services/admin.py

import logging
import math

from sqlalchemy.orm import Session

from invite_rewards.crud import member as crud_member
from invite_rewards.schemas.member import MemberListItem, PaginatedMembers

logger = logging.getLogger(__name__)


async def get_paginated_members(db: Session, page: int, size: int, **filters) -> PaginatedMembers:
    """Собирает страницу списка участников для админки."""
    skip = (page - 1) * size
    total_members = crud_member.count_members_with_filters(db, **filters)
    total_pages = math.ceil(total_members / size) if total_members > 0 else 1

    members = crud_member.get_members(db, skip=skip, limit=size, **filters)
    logger.debug(f"Admin members page {page}/{total_pages} with filters {filters}: {len(members)} rows.")

    return PaginatedMembers(
        total_items=total_members,
        total_pages=total_pages,
        current_page=page,
        size=size,
        items=[MemberListItem.model_validate(m) for m in members],
    )
