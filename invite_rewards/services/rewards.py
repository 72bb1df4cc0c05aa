# invite_rewards/services/rewards.py
"""
Лестница вознаграждений двухуровневой программы приглашений.

Все функции чистые: результат зависит только от аргументов, поэтому
пересчет после исправления исторических данных дает тот же итог,
что и живое начисление (бонусы за рубежи учитываются ретроактивно).
"""
from datetime import datetime, timedelta, timezone
from typing import Iterable, NamedTuple

from invite_rewards.core.errors import ValidationError
from invite_rewards.schemas.referral import LadderRow, RewardTotals
from invite_rewards.services.currency import CurrencyConfig, convert, to_local

# Награда в USD за n-го прямого приглашенного; после 5-го держится на плато
LEVEL1_LADDER = {1: 50, 2: 60, 3: 70, 4: 80, 5: 90}
PLATEAU_REWARD = 90

MILESTONE_SIZE = 50
MILESTONE_BONUS = 2500

LEVEL2_REWARD = 10


class MilestoneStatus(NamedTuple):
    completed_in_cycle: int
    remaining: int
    percent: float


def _check_count(count: int) -> None:
    if count < 0:
        raise ValidationError("Count must be non-negative", count=count)


def reward_for_position(n: int) -> int:
    """Награда за n-го прямого приглашенного (позиции считаются с 1)."""
    if n < 1:
        raise ValidationError("Position must start at 1", position=n)
    return LEVEL1_LADDER.get(n, PLATEAU_REWARD)


def milestones_reached(count: int) -> int:
    _check_count(count)
    return count // MILESTONE_SIZE


def cumulative_level1_reward(count: int) -> int:
    """
    Сумма наград за позиции 1..count плюс бонус за каждую позицию,
    кратную MILESTONE_SIZE (50-й приглашенный получает и свою ставку, и бонус).
    """
    _check_count(count)
    tiered = sum(LEVEL1_LADDER[i] for i in range(1, min(count, len(LEVEL1_LADDER)) + 1))
    plateau = max(0, count - len(LEVEL1_LADDER)) * PLATEAU_REWARD
    return tiered + plateau + milestones_reached(count) * MILESTONE_BONUS


def level2_reward(count: int) -> int:
    _check_count(count)
    return count * LEVEL2_REWARD


def progress_to_next_milestone(count: int) -> MilestoneStatus:
    """
    Прогресс внутри текущего цикла из 50 приглашений.

    Когда count кратен 50 (и больше нуля), рубеж только что взят:
    completed_in_cycle == 0, remaining == 50. Это осознанное поведение,
    новый цикл начинается с нуля.
    """
    _check_count(count)
    completed = count % MILESTONE_SIZE
    return MilestoneStatus(
        completed_in_cycle=completed,
        remaining=MILESTONE_SIZE - completed,
        percent=completed / MILESTONE_SIZE,
    )


def compute_rewards(level1_count: int, level2_count: int, currency: CurrencyConfig) -> RewardTotals:
    level1_usd = cumulative_level1_reward(level1_count)
    level2_usd = level2_reward(level2_count)
    total_usd = level1_usd + level2_usd
    return RewardTotals(
        level1_usd=level1_usd,
        level2_usd=level2_usd,
        total_usd=total_usd,
        total_local=to_local(total_usd, currency.exchange_rate),
        currency=currency.code,
    )


def ladder_preview(count: int, currency: CurrencyConfig) -> list[LadderRow]:
    """Строки лестницы для витрины: минимум 100 позиций и еще 100 после текущей."""
    _check_count(count)
    size = max(100, count + 100)
    return [
        LadderRow(position=position, reward=convert(reward_for_position(position), currency))
        for position in range(1, size + 1)
    ]


def weekly_sparkline(created_at: Iterable[datetime | None], now: datetime | None = None, weeks: int = 8) -> list[int]:
    """
    Количество прямых приглашений по неделям за последние `weeks` недель,
    от самой старой недели к текущей.
    """
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    buckets = [0] * weeks
    week = timedelta(weeks=1)
    for moment in created_at:
        if moment is None:
            continue
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        # Будущие даты считаем текущей неделей
        diff = max(timedelta(0), now - moment)
        index = int(diff // week)
        if index < weeks:
            buckets[weeks - 1 - index] += 1
    return buckets
