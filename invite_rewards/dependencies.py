# invite_rewards/dependencies.py

import logging
from typing import Iterator
from contextlib import contextmanager

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from jose import JWTError, jwt

from invite_rewards.clients.member_directory import MemberDirectory
from invite_rewards.core.config import settings
from invite_rewards.db.session import SessionLocal
from invite_rewards.services.currency import CurrencyConfig, default_currency
from invite_rewards.services.member_admin import MemberActionCoordinator

# --- Инициализация логгера ---
logger = logging.getLogger(__name__)

# --- Схемы аутентификации ---
strict_bearer_scheme = HTTPBearer(auto_error=True)

# --- Управление сессией БД ---
def get_db_session_instance() -> Session:
    """Создает и возвращает экземпляр сессии БД."""
    return SessionLocal()

def get_db() -> Iterator[Session]:
    """
    Основная зависимость FastAPI для получения сессии БД.
    Это генератор, который корректно работает с `Depends`.
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def get_db_context() -> Iterator[Session]:
    """
    Контекстный менеджер для получения сессии БД вне FastAPI (скрипты, справочник).
    """
    db = get_db_session_instance()
    try:
        yield db
    finally:
        db.close()

# --- Компоненты реферальной программы (создаются в lifespan) ---

def get_directory(request: Request) -> MemberDirectory:
    return request.app.state.directory

def get_coordinator(request: Request) -> MemberActionCoordinator:
    return request.app.state.coordinator

def get_currency() -> CurrencyConfig:
    return default_currency()

# --- Зависимости аутентификации и авторизации ---

def get_admin_user(credentials: HTTPAuthorizationCredentials = Depends(strict_bearer_scheme)) -> str:
    """
    Зависимость для защиты админских эндпоинтов.
    Требует валидный токен с ролью admin, иначе 401/403.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT Error during token decoding: {e}")
        raise credentials_exception

    username: str | None = payload.get("sub")
    if username is None:
        logger.warning("Token payload is missing 'sub'.")
        raise credentials_exception

    if payload.get("role") != "admin":
        logger.warning(f"Permission denied for '{username}': token has no admin role.")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have permission to access this resource."
        )

    logger.debug(f"Admin access granted for '{username}'.")
    return username
