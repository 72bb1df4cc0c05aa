# invite_rewards/schemas/referral.py
from typing import List

from pydantic import BaseModel

from invite_rewards.schemas.member import MemberRead


class ReferralGraph(BaseModel):
    """Владелец и его приглашенные двух уровней."""
    owner: MemberRead
    level1: List[MemberRead]
    level2: List[MemberRead]


class Money(BaseModel):
    usd: int
    local: int
    currency: str


class RewardTotals(BaseModel):
    level1_usd: int
    level2_usd: int
    total_usd: int
    total_local: int
    currency: str


class MilestoneProgress(BaseModel):
    completed_in_cycle: int
    remaining: int
    percent: float
    target: int
    bonus: Money


class DirectInvite(MemberRead):
    """Прямой приглашенный с номером позиции и наградой за нее."""
    index: int
    reward: Money


class LadderRow(BaseModel):
    position: int
    reward: Money


class ReferralReport(BaseModel):
    """Полный отчет по реферальной программе для страницы участника."""
    owner: MemberRead
    level1: List[DirectInvite]
    level2: List[MemberRead]
    level1_total: Money
    level2_total: Money
    totals: RewardTotals
    progress: MilestoneProgress
    sparkline: List[int]
    ladder: List[LadderRow]
