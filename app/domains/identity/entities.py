from typing import Optional


class User:
    """Сущность пользователя домена Identity"""

    def __init__(self, id: str, username: str, email: Optional[str] = None):
        self.id = id
        self.username = username
        self.email = email

    def __eq__(self, other) -> bool:
        if not isinstance(other, User):
            return False
        return self.id == other.id

    def __repr__(self) -> str:
        return f"User(id={self.id}, username={self.username})"
