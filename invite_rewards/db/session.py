# invite_rewards/db/session.py
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from invite_rewards.core.config import settings

if settings.DATABASE_URL.startswith("sqlite"):
    # Для sqlite (локальный запуск) нужно разрешить доступ из разных потоков
    connect_args = {"check_same_thread": False}
else:
    # Таймаут запросов справочника задается на стороне Postgres
    connect_args = {"options": f"-c statement_timeout={int(settings.DIRECTORY_TIMEOUT_SECONDS * 1000)}"}

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()
