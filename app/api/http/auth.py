from fastapi import APIRouter, Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional

from app.core.config import Settings
from app.core.errors import UnauthorizedError
from app.domains.identity.entities import User
from app.domains.identity.schemas import Token, TokenRequest, UserResponse
from app.domains.identity.services import IdentityService

router = APIRouter(prefix="/auth", tags=["authentication"])
security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity_service(settings: Settings = Depends(get_app_settings)) -> IdentityService:
    return IdentityService(settings)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    identity_service: IdentityService = Depends(get_identity_service),
) -> User:
    """Зависимость для получения текущего пользователя"""
    if credentials is None:
        raise UnauthorizedError()
    return identity_service.resolve_token(credentials.credentials)


@router.post("/token", response_model=Token)
async def issue_token(
    data: TokenRequest,
    identity_service: IdentityService = Depends(get_identity_service),
):
    """Выдача JWT токена известному пользователю"""
    token, user = identity_service.issue_token(data.username)
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)):
    """Информация о текущем пользователе"""
    return UserResponse.model_validate(user)
