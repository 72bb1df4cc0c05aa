# invite_rewards/core/config.py
from typing import List
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Настройки базы данных
    DATABASE_USER: str = "invite"
    DATABASE_PASSWORD: str = "invite"
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "invite_rewards"
    # Позволяет указать готовый URL (например, sqlite для локального запуска)
    DATABASE_URL_OVERRIDE: str | None = None

    # Настройки JWT токенов
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # Учетная запись администратора панели
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin"

    # Валюта отображения: сколько единиц местной валюты в одном долларе
    EXCHANGE_RATE: float = Field(default=10000, gt=0)
    LOCAL_CURRENCY: str = "SYP"

    # Генерация персональных кодов приглашения
    INVITE_CODE_MAX_ATTEMPTS: int = Field(default=6, ge=1)

    # Ограничения справочника участников
    DIRECTORY_TIMEOUT_SECONDS: float = 10.0
    DIRECTORY_MAX_OR_TERMS: int = Field(default=100, ge=1)
    DIRECTORY_CASE_INSENSITIVE_QUERIES: bool = True

    # slowapi: в проде указываем redis://...
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    LOGIN_RATE_LIMIT: str = "5/minute"

    CORS_ORIGINS_STR: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    @property
    def CORS_ORIGINS(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS_STR.split(',') if origin.strip()]

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql+psycopg2://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"

    model_config = SettingsConfigDict(env_file=".env", populate_by_name=True, extra="ignore")

settings = Settings()
