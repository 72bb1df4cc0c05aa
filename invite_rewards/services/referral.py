# invite_rewards/services/referral.py
import logging
from datetime import datetime

from invite_rewards.clients.member_directory import MemberDirectory
from invite_rewards.core.errors import TransientDirectoryError
from invite_rewards.core.filters import (
    OLDEST_FIRST, Contains, Equals, FilterExpr, In, IsNotNull, OrderBy,
    all_of, any_of, normalize_code, sort_records,
)
from invite_rewards.models.member import MemberStatus
from invite_rewards.schemas.member import MemberRead
from invite_rewards.schemas.referral import DirectInvite, MilestoneProgress, ReferralGraph, ReferralReport
from invite_rewards.services import rewards
from invite_rewards.services.currency import CurrencyConfig, convert

logger = logging.getLogger(__name__)

APPROVED = Equals("status", MemberStatus.APPROVED.value)


def owner_code_of(owner: MemberRead) -> str:
    """Код, по которому ищем приглашенных: персональный, иначе введенный при регистрации."""
    code = owner.invite_code_self if owner.invite_code_self is not None else owner.invite_code
    return normalize_code(code)


async def find_with_fallback(
    directory: MemberDirectory,
    where: FilterExpr,
    prefetch: FilterExpr,
    order: OrderBy = OLDEST_FIRST,
) -> list[MemberRead]:
    """
    Выполняет запрос в справочнике. Если движок не умеет выразить фильтр,
    выбирает более широкий набор `prefetch` и применяет тот же `where` в процессе.
    """
    try:
        return await directory.find(where, order)
    except TransientDirectoryError as e:
        logger.warning(f"Directory cannot run filter natively ({e.message}). Falling back to in-process filtering.")
        candidates = await directory.find(prefetch, order)
        return [member for member in candidates if where.matches(member)]


def merge_unique(*groups: list[MemberRead], exclude: set[int] | None = None) -> list[MemberRead]:
    """Объединяет списки без повторов по id; первая встреченная запись побеждает."""
    exclude = exclude or set()
    merged: dict[int, MemberRead] = {}
    for group in groups:
        for member in group:
            if member.id in exclude or member.id in merged:
                continue
            merged[member.id] = member
    return list(merged.values())


async def resolve_level1(
    directory: MemberDirectory,
    owner: MemberRead,
    order: OrderBy = OLDEST_FIRST,
) -> list[MemberRead]:
    """
    Прямые приглашенные: одобренные участники, у которых referrer_id указывает
    на владельца, либо введенный/персональный код содержит код владельца.
    """
    structural = await directory.find(all_of(APPROVED, Equals("referrer_id", owner.id)), order)

    by_code: list[MemberRead] = []
    owner_code = owner_code_of(owner)
    if owner_code:
        where = all_of(
            APPROVED,
            any_of(Contains("invite_code", owner_code), Contains("invite_code_self", owner_code)),
        )
        # Без OR: запасной запрос должен выполняться при любом лимите ветвей
        prefetch = APPROVED
        by_code = await find_with_fallback(directory, where, prefetch, order)
    else:
        logger.info(f"Member {owner.id} has no invite code; only structural referrals are resolved.")

    # Персональный код владельца совпадает сам с собой, владельца исключаем
    level1 = merge_unique(structural, by_code, exclude={owner.id})
    return sort_records(level1, order)


async def resolve_level2(
    directory: MemberDirectory,
    level1: list[MemberRead],
    owner_id: int,
    order: OrderBy = OLDEST_FIRST,
) -> list[MemberRead]:
    """Косвенные приглашенные: те, кого пригласил кто-то из первого уровня."""
    if not level1:
        return []

    level1_ids = tuple(member.id for member in level1)
    level1_codes = sorted({normalize_code(m.invite_code_self) for m in level1} - {""})

    structural = await directory.find(all_of(APPROVED, In("referrer_id", level1_ids)), order)

    by_code: list[MemberRead] = []
    if level1_codes:
        where = all_of(
            APPROVED,
            any_of(*[Equals("invite_code", code, case_insensitive=True) for code in level1_codes]),
        )
        prefetch = all_of(APPROVED, IsNotNull("invite_code"))
        by_code = await find_with_fallback(directory, where, prefetch, order)

    # Участник не может одновременно быть первым и вторым уровнем одного владельца
    level2 = merge_unique(structural, by_code, exclude=set(level1_ids) | {owner_id})
    return sort_records(level2, order)


async def resolve_referrals(
    directory: MemberDirectory,
    owner_id: int,
    order: OrderBy = OLDEST_FIRST,
) -> ReferralGraph:
    """
    Строит двухуровневый граф приглашений. NotFound для владельца пробрасывается,
    пустые уровни означают «приглашений пока нет».
    """
    owner = await directory.get(owner_id)
    level1 = await resolve_level1(directory, owner, order)
    level2 = await resolve_level2(directory, level1, owner.id, order)
    logger.info(f"Resolved referrals for member {owner.id}: level1={len(level1)}, level2={len(level2)}")
    return ReferralGraph(owner=owner, level1=level1, level2=level2)


def annotate_direct_invites(level1: list[MemberRead], currency: CurrencyConfig) -> list[DirectInvite]:
    """Назначает позиции по порядку регистрации (старые первыми) и награду за каждую."""
    ordered = sort_records(list(level1), OLDEST_FIRST)
    return [
        DirectInvite(
            **member.model_dump(),
            index=position,
            reward=convert(rewards.reward_for_position(position), currency),
        )
        for position, member in enumerate(ordered, start=1)
    ]


async def build_referral_report(
    directory: MemberDirectory,
    owner_id: int,
    currency: CurrencyConfig,
    now: datetime | None = None,
) -> ReferralReport:
    """Собирает полную статистику по реферальной программе для страницы участника."""
    graph = await resolve_referrals(directory, owner_id, OLDEST_FIRST)
    level1_count = len(graph.level1)
    level2_count = len(graph.level2)

    totals = rewards.compute_rewards(level1_count, level2_count, currency)
    status = rewards.progress_to_next_milestone(level1_count)

    return ReferralReport(
        owner=graph.owner,
        level1=annotate_direct_invites(graph.level1, currency),
        level2=graph.level2,
        level1_total=convert(totals.level1_usd, currency),
        level2_total=convert(totals.level2_usd, currency),
        totals=totals,
        progress=MilestoneProgress(
            completed_in_cycle=status.completed_in_cycle,
            remaining=status.remaining,
            percent=status.percent,
            target=rewards.MILESTONE_SIZE,
            bonus=convert(rewards.MILESTONE_BONUS, currency),
        ),
        sparkline=rewards.weekly_sparkline((m.created_at for m in graph.level1), now=now),
        ladder=rewards.ladder_preview(level1_count, currency),
    )
