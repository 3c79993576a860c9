from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple
import logging

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from app.core.db import build_session_factory
from app.core.errors import DuplicateVersionError
from app.db.base import Base
from app.db.models.offer import Offer as OfferModel, OfferVersion as OfferVersionModel
from app.db.repositories.base import (
    OfferRepositoryBase, OfferStorage, OfferVersionRepositoryBase, UnitOfWork
)
from app.domains.offers.entities import Offer, OfferSnapshot, OfferVersion

logger = logging.getLogger(__name__)

ORDER_COLUMNS = {
    "createdAt": OfferModel.created_at,
    "updatedAt": OfferModel.updated_at,
    "title": OfferModel.title,
}


class OfferRepository(OfferRepositoryBase):
    """Репозиторий для работы с предложениями"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, offer: Offer) -> Offer:
        """Создание нового предложения"""
        self.session.add(self._to_model(offer))
        await self.session.flush()
        return offer

    async def get(self, offer_id: str, for_update: bool = False) -> Optional[Offer]:
        """Получение предложения по ID (с блокировкой строки при for_update)"""
        stmt = (
            select(OfferModel)
            .where(OfferModel.id == offer_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.session.execute(stmt)
        db_offer = result.scalar_one_or_none()
        return self._to_domain(db_offer) if db_offer else None

    async def list_by_owner(
        self,
        owner_id: str,
        status: Optional[str],
        limit: int,
        offset: int,
        order_by: str,
        order: str,
    ) -> Tuple[List[Offer], int]:
        """Предложения владельца с фильтрацией, сортировкой и пагинацией"""
        conditions = [OfferModel.owner_id == owner_id]
        if status:
            conditions.append(OfferModel.status == status)

        column = ORDER_COLUMNS[order_by]
        ordering = column.desc() if order == "desc" else column.asc()

        result = await self.session.execute(
            select(OfferModel)
            .where(*conditions)
            .order_by(ordering, OfferModel.id)
            .offset(offset)
            .limit(limit)
        )
        offers = [self._to_domain(row) for row in result.scalars().all()]

        total = await self.session.execute(
            select(func.count(OfferModel.id)).where(*conditions)
        )
        return offers, total.scalar() or 0

    async def save(self, offer: Offer, expected: Offer) -> bool:
        """Обновление предложения с проверкой, что строка не изменилась"""
        stmt = (
            update(OfferModel)
            .where(
                OfferModel.id == offer.id,
                OfferModel.etag == expected.etag,
                OfferModel.current_version == expected.current_version,
                OfferModel.total_versions == expected.total_versions,
            )
            .values(
                title=offer.title,
                content=offer.content,
                status=offer.status,
                current_version=offer.current_version,
                total_versions=offer.total_versions,
                etag=offer.etag,
                updated_at=offer.updated_at,
                last_modified_by=offer.last_modified_by,
                is_published=offer.is_published,
                published_version=offer.published_version,
                published_at=offer.published_at,
                public_url=offer.public_url,
                has_unpublished_changes=offer.has_unpublished_changes,
            )
            .execution_options(synchronize_session=False)
        )

        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def delete(self, offer_id: str, owner_id: str) -> bool:
        """Удаление предложения владельца"""
        stmt = delete(OfferModel).where(
            OfferModel.id == offer_id,
            OfferModel.owner_id == owner_id,
        ).execution_options(synchronize_session=False)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    def _to_domain(self, db_offer: OfferModel) -> Offer:
        """Преобразование модели БД в доменную сущность"""
        return Offer(
            id=db_offer.id,
            owner_id=db_offer.owner_id,
            title=db_offer.title,
            content=db_offer.content,
            status=db_offer.status,
            current_version=db_offer.current_version,
            total_versions=db_offer.total_versions,
            etag=db_offer.etag,
            created_at=db_offer.created_at,
            updated_at=db_offer.updated_at,
            last_modified_by=db_offer.last_modified_by,
            is_published=db_offer.is_published,
            published_version=db_offer.published_version,
            published_at=db_offer.published_at,
            public_url=db_offer.public_url,
            has_unpublished_changes=db_offer.has_unpublished_changes,
        )

    def _to_model(self, offer: Offer) -> OfferModel:
        """Преобразование доменной сущности в модель БД"""
        return OfferModel(
            id=offer.id,
            owner_id=offer.owner_id,
            title=offer.title,
            content=offer.content,
            status=offer.status,
            current_version=offer.current_version,
            total_versions=offer.total_versions,
            etag=offer.etag,
            created_at=offer.created_at,
            updated_at=offer.updated_at,
            last_modified_by=offer.last_modified_by,
            is_published=offer.is_published,
            published_version=offer.published_version,
            published_at=offer.published_at,
            public_url=offer.public_url,
            has_unpublished_changes=offer.has_unpublished_changes,
        )


class OfferVersionRepository(OfferVersionRepositoryBase):
    """Репозиторий для работы с версиями предложений"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, version: OfferVersion) -> OfferVersion:
        """Создание новой версии предложения"""
        if await self._exists(version.offer_id, version.version_number):
            raise DuplicateVersionError(version.offer_id, version.version_number)

        self.session.add(self._to_model(version))
        try:
            await self.session.flush()
        except IntegrityError:
            # Параллельная транзакция успела вставить тот же номер
            raise DuplicateVersionError(version.offer_id, version.version_number)
        return version

    async def get(self, offer_id: str, version_number: int) -> Optional[OfferVersion]:
        """Получение версии по номеру"""
        result = await self.session.execute(
            select(OfferVersionModel)
            .where(
                OfferVersionModel.offer_id == offer_id,
                OfferVersionModel.version_number == version_number,
            )
            .execution_options(populate_existing=True)
        )
        db_version = result.scalar_one_or_none()
        return self._to_domain(db_version) if db_version else None

    async def list(self, offer_id: str) -> List[OfferVersion]:
        """Получение версий предложения"""
        result = await self.session.execute(
            select(OfferVersionModel)
            .where(OfferVersionModel.offer_id == offer_id)
            .order_by(OfferVersionModel.created_at.desc(), OfferVersionModel.version_number.desc())
            .execution_options(populate_existing=True)
        )
        return [self._to_domain(row) for row in result.scalars().all()]

    async def replace_snapshot(self, offer_id: str, version_number: int, snapshot: OfferSnapshot) -> bool:
        """Перезапись содержимого версии на месте"""
        result = await self.session.execute(
            update(OfferVersionModel)
            .where(
                OfferVersionModel.offer_id == offer_id,
                OfferVersionModel.version_number == version_number,
            )
            .values(title=snapshot.title, content=snapshot.content, status=snapshot.status)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_published(self, offer_id: str, version_number: int, published: bool) -> bool:
        """Статус публикации версии; опубликованной может быть только одна"""
        if not await self._exists(offer_id, version_number):
            return False

        if published:
            await self.session.execute(
                update(OfferVersionModel)
                .where(
                    OfferVersionModel.offer_id == offer_id,
                    OfferVersionModel.version_number != version_number,
                    OfferVersionModel.is_published.is_(True),
                )
                .values(is_published=False)
                .execution_options(synchronize_session=False)
            )

        await self.session.execute(
            update(OfferVersionModel)
            .where(
                OfferVersionModel.offer_id == offer_id,
                OfferVersionModel.version_number == version_number,
            )
            .values(is_published=published)
            .execution_options(synchronize_session=False)
        )
        return True

    async def delete_all(self, offer_id: str) -> int:
        """Удаление всех версий предложения"""
        result = await self.session.execute(
            delete(OfferVersionModel)
            .where(OfferVersionModel.offer_id == offer_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def _exists(self, offer_id: str, version_number: int) -> bool:
        result = await self.session.execute(
            select(OfferVersionModel.id).where(
                OfferVersionModel.offer_id == offer_id,
                OfferVersionModel.version_number == version_number,
            )
        )
        return result.scalar_one_or_none() is not None

    def _to_domain(self, db_version: OfferVersionModel) -> OfferVersion:
        """Преобразование модели БД в доменную сущность"""
        return OfferVersion(
            id=db_version.id,
            offer_id=db_version.offer_id,
            version_number=db_version.version_number,
            title=db_version.title,
            content=db_version.content,
            status=db_version.status,
            change_type=db_version.change_type,
            description=db_version.description,
            created_at=db_version.created_at,
            created_by=db_version.created_by,
            is_published=db_version.is_published,
        )

    def _to_model(self, version: OfferVersion) -> OfferVersionModel:
        """Преобразование доменной сущности в модель БД"""
        return OfferVersionModel(
            id=version.id,
            offer_id=version.offer_id,
            version_number=version.version_number,
            title=version.title,
            content=version.content,
            status=version.status,
            change_type=version.change_type,
            description=version.description,
            created_at=version.created_at,
            created_by=version.created_by,
            is_published=version.is_published,
        )


class SqlUnitOfWork(UnitOfWork):
    def __init__(self, session: AsyncSession):
        self.session = session
        self.offers = OfferRepository(session)
        self.versions = OfferVersionRepository(session)


class SqlOfferStorage(OfferStorage):
    """Реляционное хранилище (SQLAlchemy async)"""

    def __init__(self, engine: AsyncEngine, create_schema: bool = False):
        self.engine = engine
        self.session_factory = build_session_factory(engine)
        self.create_schema = create_schema

    async def init(self) -> None:
        if self.create_schema:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database schema is ready")

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def transaction(self, read_only: bool = False) -> AsyncIterator[SqlUnitOfWork]:
        """Одна сессия и одна транзакция; откат при любом исключении.

        read_only не меняет поведения: изоляцию чтения обеспечивает СУБД.
        """
        async with self.session_factory() as session:
            async with session.begin():
                yield SqlUnitOfWork(session)

    async def health_check(self) -> dict:
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            healthy = result.scalar() == 1
        return {
            "backend": "sql",
            "connected": healthy,
            "dialect": self.engine.dialect.name,
        }
