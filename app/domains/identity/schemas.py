from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional


class UserResponse(BaseModel):
    """Схема для ответа с данными пользователя"""
    id: str
    username: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TokenRequest(BaseModel):
    """Схема для выдачи токена"""
    username: str = Field(..., min_length=1, max_length=100)


class Token(BaseModel):
    """Схема для JWT токена"""
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
