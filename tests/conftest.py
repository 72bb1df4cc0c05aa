# tests/conftest.py
import os

# Настройки должны быть выставлены до импорта приложения
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from invite_rewards.clients.member_directory import InMemoryMemberDirectory, SqlMemberDirectory
from invite_rewards.db.session import Base
from invite_rewards.dependencies import get_db
from invite_rewards.main import app
from invite_rewards.models import member  # noqa: F401  Импортируем модели для создания таблиц
from invite_rewards.schemas.member import MemberRead
from invite_rewards.services.auth import create_access_token
from invite_rewards.services.member_admin import MemberActionCoordinator, SelectionStore

# Используем in-memory SQLite для тестов - это быстро и изолированно
SQLALCHEMY_DATABASE_URL = "sqlite://"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BASE_TIME = datetime(2024, 1, 1, 12, 0, 0)


def make_member(member_id: int, **fields) -> MemberRead:
    """Участник для справочника в памяти; created_at растет вместе с id."""
    data = {
        "id": member_id,
        "full_name": f"Member {member_id}",
        "status": "approved",
        "invite_code_self": f"CODE{member_id}",
        "created_at": BASE_TIME + timedelta(minutes=member_id),
    }
    data.update(fields)
    return MemberRead(**data)


@pytest.fixture
def new_member():
    return make_member


@pytest.fixture(scope="function")
def db_session() -> Session:
    """
    Фикстура для создания чистой базы данных для каждого теста.
    """
    Base.metadata.create_all(bind=engine) # Создаем все таблицы
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine) # Очищаем все после теста


@pytest.fixture
def sql_directory(db_session) -> SqlMemberDirectory:
    return SqlMemberDirectory(TestingSessionLocal)


@pytest.fixture
def memory_directory() -> InMemoryMemberDirectory:
    return InMemoryMemberDirectory()


@pytest.fixture
def selection_store() -> SelectionStore:
    return SelectionStore()


@pytest.fixture
def coordinator(memory_directory, selection_store) -> MemberActionCoordinator:
    return MemberActionCoordinator(memory_directory, selection_store)


@pytest.fixture
async def client(db_session, sql_directory):
    """HTTP-клиент к приложению поверх тестовой БД."""
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.directory = sql_directory
    app.state.coordinator = MemberActionCoordinator(sql_directory, SelectionStore())

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_auth_headers() -> dict:
    token = create_access_token({"sub": "admin", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def add_member(db_session):
    """Создает участника в тестовой БД."""
    from invite_rewards.models.member import Member

    def _add(full_name: str = "Test Member", created_at: datetime | None = None, **fields) -> Member:
        db_member = Member(
            full_name=full_name,
            created_at=created_at or datetime.now(timezone.utc),
            **fields,
        )
        db_session.add(db_member)
        db_session.commit()
        db_session.refresh(db_member)
        return db_member

    return _add
