# invite_rewards/routers/v1/endpoints/admin/members.py

import logging

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from invite_rewards.clients.member_directory import MemberDirectory
from invite_rewards.dependencies import get_coordinator, get_db, get_directory
from invite_rewards.schemas.member import (
    BatchActionRequest,
    BatchResult,
    BatchSelectRequest,
    MemberActionRequest,
    MemberRead,
    PaginatedMembers,
    SelectionResult,
    SelectRequest,
)
from invite_rewards.schemas.referral import ReferralGraph
from invite_rewards.services import admin as admin_service
from invite_rewards.services import referral as referral_service
from invite_rewards.services.member_admin import MemberActionCoordinator, partial_failure

logger = logging.getLogger(__name__)

# Создаем роутер для этого модуля. Префикс будет добавлен на уровне выше.
router = APIRouter()


def _batch_response(result: BatchResult) -> JSONResponse:
    """200 при полном успехе, 207 если часть участников не обработана."""
    error = partial_failure(result)
    if error is not None:
        logger.warning(f"Batch finished partially: {error.message}")
        return JSONResponse(status_code=error.http_status, content=result.model_dump())
    return JSONResponse(status_code=status.HTTP_200_OK, content=result.model_dump())


@router.get("", response_model=PaginatedMembers)
async def get_members_list(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=200),
    status_filter: str | None = Query(None, alias="status", description="pending, approved, rejected, deleted"),
    q: str | None = Query(None, description="Поиск по имени, коду приглашения, email или ID"),
    db: Session = Depends(get_db),
):
    """
    [АДМИН] Возвращает пагинированный список участников с фильтром и поиском.
    """
    filters = {"status": status_filter, "search": q}
    active_filters = {k: v for k, v in filters.items() if v}
    return await admin_service.get_paginated_members(db, page, size, **active_filters)


@router.post("/batch")
async def batch_action_endpoint(
    body: BatchActionRequest,
    coordinator: MemberActionCoordinator = Depends(get_coordinator),
):
    """[АДМИН] Применяет approve / reject / delete к списку участников."""
    result = await coordinator.batch_action(body.ids, body.action)
    return _batch_response(result)


@router.post("/batch-select")
async def batch_select_endpoint(
    body: BatchSelectRequest,
    coordinator: MemberActionCoordinator = Depends(get_coordinator),
):
    """[АДМИН] Ставит или снимает отметку сразу у нескольких участников."""
    result = await coordinator.batch_select(body.ids, body.selected)
    return _batch_response(result)


@router.get("/{member_id}", response_model=ReferralGraph)
async def get_member_details(
    member_id: int,
    directory: MemberDirectory = Depends(get_directory),
    coordinator: MemberActionCoordinator = Depends(get_coordinator),
):
    """
    [АДМИН] Карточка участника с приглашенными первого и второго уровня.
    """
    graph = await referral_service.resolve_referrals(directory, member_id)
    coordinator.seed_selection(graph.level1 + graph.level2)
    return graph


@router.post("/{member_id}/status", response_model=MemberRead)
async def change_member_status(
    member_id: int,
    body: MemberActionRequest,
    coordinator: MemberActionCoordinator = Depends(get_coordinator),
):
    """[АДМИН] Меняет статус участника (approve / reject / delete)."""
    return await coordinator.change_status(member_id, body.action)


@router.post("/{member_id}/select", response_model=SelectionResult)
async def select_member(
    member_id: int,
    body: SelectRequest,
    response: Response,
    coordinator: MemberActionCoordinator = Depends(get_coordinator),
):
    """[АДМИН] Ставит или снимает отметку участника."""
    result = await coordinator.set_selected(member_id, body.selected)
    if not result.ok:
        response.status_code = status.HTTP_409_CONFLICT if result.error == "superseded" else status.HTTP_502_BAD_GATEWAY
    return result


@router.delete("/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def purge_member(
    member_id: int,
    coordinator: MemberActionCoordinator = Depends(get_coordinator),
):
    """[АДМИН] Окончательно удаляет участника, уже помеченного как deleted."""
    await coordinator.purge(member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
