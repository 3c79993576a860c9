from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.http import auth_router, health_router, offers_router, register_exception_handlers
from app.core.config import Settings, get_settings
from app.core.db import build_engine
from app.core.logging import setup_logging
from app.db.repositories import FileOfferStorage, OfferStorage, SqlOfferStorage

logger = logging.getLogger(__name__)


def build_storage(settings: Settings) -> OfferStorage:
    """Хранилище по настройке storage_backend"""
    if settings.storage_backend == "file":
        return FileOfferStorage(settings.data_file)
    return SqlOfferStorage(build_engine(settings), create_schema=settings.auto_create_schema)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        storage = build_storage(settings)
        await storage.init()
        app.state.storage = storage
        logger.info(f"OfferStore started with {settings.storage_backend} storage")
        try:
            yield
        finally:
            await storage.close()
            logger.info("OfferStore stopped")

    app = FastAPI(
        title="OfferStore",
        description="Хранилище версионируемых предложений с оптимистичной блокировкой",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["ETag"],
    )

    register_exception_handlers(app)

    # Подключаем роутеры
    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(offers_router)

    @app.get("/")
    async def root():
        """Корневой эндпоинт"""
        return {
            "message": "OfferStore API",
            "version": "1.0.0",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
