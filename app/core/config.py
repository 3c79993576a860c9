from functools import lru_cache
from typing import Dict, List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./offers.db"
    storage_backend: Literal["sql", "file"] = "sql"
    data_file: str = "./data/offers.json"

    db_echo: bool = False
    db_pool_size: int = 10
    db_pool_timeout: float = 5.0
    db_connect_timeout: float = 2.0
    # Для разработки и тестов; в продакшене схема создается миграциями alembic
    auto_create_schema: bool = True

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Статическая таблица токенов: токен -> идентификатор пользователя
    auth_tokens: Dict[str, str] = {
        "token_user1": "user_1",
        "token_user2": "user_2",
        "token_user3": "user_3",
    }

    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"
    public_base_url: Optional[str] = None

    model_config = {"env_file": ".env", "extra": "ignore"}


@lru_cache
def get_settings() -> Settings:
    """Настройки приложения (читаются один раз)"""
    return Settings()
