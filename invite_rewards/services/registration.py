# invite_rewards/services/registration.py
import logging
import re
import secrets
import string
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from invite_rewards.core.config import settings
from invite_rewards.core.errors import RetriesExhausted
from invite_rewards.crud import member as crud_member
from invite_rewards.models.member import Member, MemberStatus
from invite_rewards.schemas.member import MemberCreate

logger = logging.getLogger(__name__)

_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code_self(seed: str = "") -> str:
    """Персональный код вида `ИМЯ-XXXXXX`: первые 6 символов имени и случайный хвост."""
    base = re.sub(r"\s+", "-", (seed or "").strip() or "USER")[:6].upper()
    tail = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))
    return f"{base}-{tail}"


def register_member(
    db: Session,
    payload: MemberCreate,
    max_attempts: int | None = None,
    code_factory: Callable[[str], str] = generate_invite_code_self,
) -> Member:
    """
    Создает участника в статусе pending с новым персональным кодом.

    Если введенный код приглашения принадлежит существующему участнику,
    сразу проставляем referrer_id. При коллизии персонального кода
    генерируем новый, но не больше max_attempts раз.
    """
    max_attempts = max_attempts or settings.INVITE_CODE_MAX_ATTEMPTS

    referrer = crud_member.get_member_by_invite_code_self(db, payload.invite_code)
    referrer_id = None
    if referrer and referrer.status != MemberStatus.DELETED.value:
        referrer_id = referrer.id
    else:
        logger.info(f"Invite code '{payload.invite_code}' does not match any member; referrer left empty.")

    fields = payload.model_dump()
    for attempt in range(1, max_attempts + 1):
        code = code_factory(payload.full_name)
        try:
            member = crud_member.create_member(
                db,
                **fields,
                invite_code_self=code,
                referrer_id=referrer_id,
                status=MemberStatus.PENDING.value,
            )
        except IntegrityError:
            logger.warning(f"Invite code collision on '{code}' (attempt {attempt}/{max_attempts}). Regenerating.")
            continue
        logger.info(f"Registered member {member.id} with invite code '{code}' (referrer: {referrer_id}).")
        return member

    logger.error(f"Failed to generate a unique invite code for '{payload.full_name}' after {max_attempts} attempts.")
    raise RetriesExhausted("Could not generate a unique personal invite code", attempts=max_attempts)
