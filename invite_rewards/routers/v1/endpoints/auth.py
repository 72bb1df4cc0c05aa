# invite_rewards/routers/v1/endpoints/auth.py
from fastapi import APIRouter, Request

from invite_rewards.core.config import settings
from invite_rewards.core.limiter import limiter
from invite_rewards.schemas.auth import AdminLogin, Token
from invite_rewards.services.auth import authenticate_admin

router = APIRouter()

@router.get("/")
def read_root():
    return {"status": "ok"}


@router.post("/auth/admin/login", response_model=Token)
@limiter.limit(settings.LOGIN_RATE_LIMIT)
def login_admin(request: Request, credentials: AdminLogin):
    """
    Выдает токен администратора.
    Защищено лимитом запросов с одного IP.
    """
    return authenticate_admin(credentials)
