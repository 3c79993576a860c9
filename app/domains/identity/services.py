from typing import Dict, Optional
import logging

from app.core.config import Settings
from app.core.errors import UnauthorizedError
from app.core.security import create_access_token, verify_token
from app.domains.identity.entities import User

logger = logging.getLogger(__name__)

# Заглушка провайдера пользователей: учетные записи фиксированы
KNOWN_USERS: Dict[str, User] = {
    "user_1": User(id="user_1", username="alice", email="alice@example.com"),
    "user_2": User(id="user_2", username="bob", email="bob@example.com"),
    "user_3": User(id="user_3", username="charlie", email="charlie@example.com"),
}


class IdentityService:
    """Сервис для идентификации пользователей по токену"""

    def __init__(self, settings: Settings):
        self.settings = settings

    def get_user(self, user_id: str) -> Optional[User]:
        """Получение пользователя по ID"""
        return KNOWN_USERS.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Получение пользователя по username"""
        for user in KNOWN_USERS.values():
            if user.username == username:
                return user
        return None

    def resolve_token(self, token: Optional[str]) -> User:
        """Пользователь по статическому токену или JWT"""
        if not token:
            raise UnauthorizedError()

        user_id = self.settings.auth_tokens.get(token)
        if user_id is None:
            payload = verify_token(token, self.settings)
            user_id = payload.get("sub") if payload else None

        user = self.get_user(user_id) if user_id else None
        if user is None:
            logger.info("Rejected request with invalid token")
            raise UnauthorizedError("Invalid token")
        return user

    def issue_token(self, username: str) -> tuple[str, User]:
        """Выдача JWT токена известному пользователю"""
        user = self.get_user_by_username(username)
        if user is None:
            raise UnauthorizedError("Unknown user")

        token = create_access_token(
            data={"sub": user.id, "username": user.username},
            settings=self.settings,
        )
        logger.info(f"Issued access token for {user.username}")
        return token, user
