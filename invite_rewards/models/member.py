# invite_rewards/models/member.py

import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, false, func
from sqlalchemy.orm import relationship

from invite_rewards.db.session import Base


class MemberStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELETED = "deleted"


class Member(Base):
    __tablename__ = "producer_members"

    id = Column(Integer, primary_key=True, index=True)

    full_name = Column(String, nullable=False)
    email = Column(String, index=True, nullable=True)
    whatsapp = Column(String, nullable=True)
    country = Column(String, nullable=True)
    province = Column(String, nullable=True)
    city = Column(String, nullable=True)
    address = Column(String, nullable=True)

    # Кто пригласил. Слабая ссылка: пригласивший может быть удален или не одобрен
    referrer_id = Column(Integer, ForeignKey("producer_members.id", ondelete="SET NULL"), nullable=True, index=True)
    # Код, введенный при регистрации (свободный текст)
    invite_code = Column(String, nullable=True, index=True)
    # Персональный код участника, который он раздает другим
    invite_code_self = Column(String, unique=True, index=True, nullable=True)

    status = Column(String, default=MemberStatus.PENDING.value, nullable=False, server_default=MemberStatus.PENDING.value, index=True)
    # Отметка в админке (чекбокс в списках приглашенных)
    invited_selected = Column(Boolean, default=False, nullable=False, server_default=false())

    # Ссылка на учетную запись для входа (внешний сервис авторизации)
    user_id = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    referrer = relationship("Member", remote_side=[id], foreign_keys=[referrer_id])
