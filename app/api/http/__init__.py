from app.api.http.health import router as health_router
from app.api.http.auth import router as auth_router
from app.api.http.offers import router as offers_router
from app.api.http.errors import register_exception_handlers

__all__ = [
    "health_router",
    "auth_router",
    "offers_router",
    "register_exception_handlers",
]
