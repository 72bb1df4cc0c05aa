# invite_rewards/routers/v1/endpoints/members.py
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from invite_rewards.clients.member_directory import MemberDirectory
from invite_rewards.dependencies import get_currency, get_db, get_directory
from invite_rewards.schemas.member import MemberCreate, MemberRegistered
from invite_rewards.schemas.referral import ReferralReport
from invite_rewards.services import referral as referral_service
from invite_rewards.services import registration as registration_service
from invite_rewards.services.currency import CurrencyConfig

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/members/register", response_model=MemberRegistered, status_code=status.HTTP_201_CREATED)
def register_member(payload: MemberCreate, db: Session = Depends(get_db)):
    """Регистрирует участника в статусе pending и выдает ему персональный код."""
    member = registration_service.register_member(db, payload)
    return MemberRegistered(
        id=member.id,
        invite_code=member.invite_code,
        invite_code_self=member.invite_code_self,
        referrer_id=member.referrer_id,
    )


@router.get("/users/{member_id}/referrals", response_model=ReferralReport)
async def get_referral_report(
    member_id: int,
    directory: MemberDirectory = Depends(get_directory),
    currency: CurrencyConfig = Depends(get_currency),
):
    """
    Отчет участника: прямые и косвенные приглашенные, награды,
    прогресс до следующего бонуса и динамика по неделям.
    """
    return await referral_service.build_referral_report(directory, member_id, currency)
