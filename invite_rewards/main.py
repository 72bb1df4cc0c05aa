# invite_rewards/main.py

import logging
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

# Конфигурация и ядро
from invite_rewards.core.config import settings as config
from invite_rewards.core.errors import ReferralError
from invite_rewards.core.limiter import limiter
from invite_rewards.core.logging_config import setup_logging
from invite_rewards.clients.member_directory import SqlMemberDirectory
from invite_rewards.db.session import SessionLocal
from invite_rewards.services.member_admin import MemberActionCoordinator, SelectionStore

# Роутеры FastAPI
from invite_rewards.routers.v1.api import api_router as v1_router

# --- Инициализация ---
logger = logging.getLogger(__name__)

# --- Обработчики ошибок ---
async def referral_error_handler(request: Request, exc: ReferralError):
    """Доменные ошибки отдаются с кодом и HTTP-статусом, заданными в их классе."""
    logger.info(f"{exc.code} for {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.http_status, content=exc.to_response())


async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Глобальный обработчик для всех необработанных исключений.
    Логирует ошибку и отдает клиенту обезличенный ответ.
    """
    logger.critical(f"Unhandled exception for request: {request.method} {request.url}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal Server Error."},
    )

# --- Lifespan Manager (запуск и остановка приложения) ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Application lifespan startup...")

    # Справочник и координатор живут весь процесс; карта отметок принадлежит приложению
    if not hasattr(app.state, "directory"):
        app.state.directory = SqlMemberDirectory(
            SessionLocal,
            case_insensitive=config.DIRECTORY_CASE_INSENSITIVE_QUERIES,
            max_or_terms=config.DIRECTORY_MAX_OR_TERMS,
        )
    if not hasattr(app.state, "coordinator"):
        app.state.coordinator = MemberActionCoordinator(
            app.state.directory,
            SelectionStore(),
            timeout=config.DIRECTORY_TIMEOUT_SECONDS,
        )
    logger.info("Member directory and action coordinator initialized.")

    yield

    logger.info("Application shutting down.")

# --- Создание FastAPI приложения ---
app = FastAPI(
    title="Invite Rewards Service",
    description="Backend for the two-level invitation program and members admin panel",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Лимитер запросов ---
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Регистрация обработчиков исключений ---
app.add_exception_handler(ReferralError, referral_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Подключение роутеров FastAPI ---
api_router = APIRouter(prefix="/api")
api_router.include_router(v1_router)

# Подключаем главный роутер к приложению
app.include_router(api_router)
