from app.domains.identity.entities import User
from app.domains.identity.schemas import Token, TokenRequest, UserResponse
from app.domains.identity.services import IdentityService, KNOWN_USERS

__all__ = [
    "User",
    "Token", "TokenRequest", "UserResponse",
    "IdentityService", "KNOWN_USERS",
]
