# invite_rewards/services/auth.py

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, status
from jose import jwt

from invite_rewards.core.config import settings
from invite_rewards.schemas.auth import AdminLogin, Token

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Создает JWT токен."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def authenticate_admin(credentials: AdminLogin) -> Token:
    """Проверяет логин и пароль администратора и выдает токен с ролью admin."""
    username_ok = secrets.compare_digest(credentials.username.encode(), settings.ADMIN_USERNAME.encode())
    password_ok = secrets.compare_digest(credentials.password.encode(), settings.ADMIN_PASSWORD.encode())
    if not (username_ok and password_ok):
        logger.warning(f"Failed admin login attempt for '{credentials.username}'.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"Admin '{credentials.username}' logged in.")
    return Token(access_token=create_access_token({"sub": credentials.username, "role": "admin"}))
