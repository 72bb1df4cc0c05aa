# invite_rewards/schemas/member.py
import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from invite_rewards.schemas.pagination import PaginatedResponse

MemberAction = Literal["approve", "reject", "delete"]

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class MemberRead(BaseModel):
    """Снимок записи участника, который отдает справочник."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    country: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    referrer_id: Optional[int] = None
    invite_code: Optional[str] = None
    invite_code_self: Optional[str] = None
    status: str = "pending"
    invited_selected: bool = False
    user_id: Optional[str] = None
    created_at: datetime


class MemberCreate(BaseModel):
    """Данные формы регистрации."""
    full_name: str = Field(..., min_length=1, max_length=200)
    whatsapp: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    province: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)
    email: str
    invite_code: str = Field(..., min_length=1, max_length=64)

    @field_validator("full_name", "whatsapp", "country", "province", "city", "address", "invite_code")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not _EMAIL_RE.match(v):
            raise ValueError("invalid email")
        return v


class MemberRegistered(BaseModel):
    id: int
    invite_code: Optional[str]
    invite_code_self: str
    referrer_id: Optional[int] = None


class MemberListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    email: Optional[str] = None
    whatsapp: Optional[str] = None
    invite_code: Optional[str] = None
    invite_code_self: Optional[str] = None
    status: str
    invited_selected: bool
    created_at: datetime


class PaginatedMembers(PaginatedResponse[MemberListItem]):
    pass


# --- Схемы для действий администратора ---
class MemberActionRequest(BaseModel):
    action: MemberAction


class SelectRequest(BaseModel):
    selected: bool


class BatchActionRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)
    action: MemberAction


class BatchSelectRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)
    selected: bool


class FailedItem(BaseModel):
    id: int
    reason: str


class BatchResult(BaseModel):
    succeeded: List[int] = []
    failed: List[FailedItem] = []

    @property
    def is_partial(self) -> bool:
        return bool(self.failed)


class SelectionResult(BaseModel):
    """Результат переключения отметки: ok=False означает, что состояние откатилось."""
    id: int
    ok: bool
    selected: bool
    error: Optional[str] = None
