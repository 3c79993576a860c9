"""Хранилище документов и журнал версий поверх транзакции хранилища.

Оба класса создаются на одну транзакцию (``UnitOfWork``): всё, что
сервис делает через них внутри ``storage.transaction()``, фиксируется
атомарно.
"""
import copy
import logging
from typing import List, Optional, Tuple

from app.core import etag as etag_utils
from app.core.errors import ConflictError, OfferNotFoundError
from app.db.repositories.base import UnitOfWork
from app.domains.offers.entities import (
    INITIAL_VERSION_DESCRIPTION, ChangeType, Offer, OfferSnapshot, OfferVersion
)

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 100


class VersionStore:
    """Журнал неизменяемых снимков предложения"""

    def __init__(self, uow: UnitOfWork):
        self.offers = uow.offers
        self.versions = uow.versions

    async def append(
        self,
        offer_id: str,
        snapshot: OfferSnapshot,
        version_number: int,
        change_type: ChangeType,
        description: str,
        author: str,
    ) -> OfferVersion:
        """Добавление версии; DuplicateVersionError, если номер занят"""
        version = OfferVersion.create_version(
            offer_id=offer_id,
            snapshot=snapshot,
            version_number=version_number,
            created_by=author,
            change_type=change_type,
            description=description,
        )
        return await self.versions.add(version)

    async def get(
        self,
        offer_id: str,
        version_number: int,
        offer: Optional[Offer] = None,
    ) -> Optional[OfferVersion]:
        """Версия по номеру.

        Если записи нет и запрошена версия 1, она синтезируется из самого
        предложения (виртуальная версия). Синтез происходит только при
        чтении и ничего не записывает.
        """
        version = await self.versions.get(offer_id, version_number)
        if version is None and version_number == 1:
            offer = offer or await self.offers.get(offer_id)
            if offer is not None:
                return OfferVersion.virtual_for(offer)
        return version

    async def list(self, offer_id: str, offer: Optional[Offer] = None) -> List[OfferVersion]:
        """Версии от новых к старым; виртуальная версия 1, если записей нет"""
        versions = await self.versions.list(offer_id)
        if not versions:
            offer = offer or await self.offers.get(offer_id)
            if offer is not None:
                return [OfferVersion.virtual_for(offer)]
        return versions

    async def materialize(self, offer: Offer) -> OfferVersion:
        """Сохранение виртуальной версии 1 как настоящей записи"""
        virtual = OfferVersion.virtual_for(offer)
        version = OfferVersion.create_version(
            offer_id=offer.id,
            snapshot=virtual.snapshot(),
            version_number=1,
            created_by=virtual.created_by,
            change_type=ChangeType.MANUAL,
            description=virtual.description,
        )
        version.created_at = virtual.created_at
        version.is_published = virtual.is_published
        return await self.versions.add(version)

    async def replace_snapshot(self, offer_id: str, version_number: int, snapshot: OfferSnapshot) -> bool:
        return await self.versions.replace_snapshot(offer_id, version_number, snapshot)

    async def set_published(self, offer_id: str, version_number: int, published: bool) -> bool:
        """Публикация версии снимает флаг со всех остальных версий"""
        return await self.versions.set_published(offer_id, version_number, published)

    async def delete_all(self, offer_id: str) -> int:
        return await self.versions.delete_all(offer_id)


class DocumentStore:
    """Текущее состояние предложений и протокол оптимистичной блокировки"""

    def __init__(self, uow: UnitOfWork):
        self.offers = uow.offers
        self.versions = VersionStore(uow)

    async def create(self, owner_id: str, title: str, content: dict, status: str) -> Offer:
        """Создание предложения вместе с версией 1"""
        snapshot = OfferSnapshot(title=title, content=content, status=status)
        offer = Offer.create_offer(owner_id, snapshot)

        await self.offers.add(offer)
        await self.versions.append(
            offer.id,
            snapshot,
            version_number=1,
            change_type=ChangeType.MANUAL,
            description=INITIAL_VERSION_DESCRIPTION,
            author=owner_id,
        )
        return offer

    async def get(self, offer_id: str, for_update: bool = False) -> Optional[Offer]:
        return await self.offers.get(offer_id, for_update=for_update)

    async def get_owned(self, offer_id: str, owner_id: str, for_update: bool = False) -> Offer:
        """Предложение пользователя; чужое неотличимо от отсутствующего"""
        offer = await self.offers.get(offer_id, for_update=for_update)
        if offer is None or not offer.is_owned_by(owner_id):
            raise OfferNotFoundError(offer_id)
        return offer

    async def list_by_owner(
        self,
        owner_id: str,
        status: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
        order_by: str = "updatedAt",
        order: str = "desc",
    ) -> Tuple[List[Offer], int, int, int]:
        """Предложения владельца; возвращает (items, total, limit, offset)"""
        limit = min(max(limit, 1), MAX_LIMIT)
        offset = max(offset, 0)

        items, total = await self.offers.list_by_owner(owner_id, status, limit, offset, order_by, order)
        return items, total, limit, offset

    async def update(
        self,
        offer_id: str,
        owner_id: str,
        snapshot: OfferSnapshot,
        expected_fingerprint: Optional[str] = None,
        create_new_version: bool = False,
        description: str = "",
    ) -> Offer:
        """Обновление с проверкой ETag.

        1. строка предложения читается с блокировкой;
        2. переданный ETag сравнивается с сохраненным (ConflictError при расхождении);
        3-4. вычисляются новые номера версий и новый ETag;
        5. запись выполняется как compare-and-swap по прочитанному состоянию;
        6. новая версия добавляется в журнал, либо текущая версия
           перезаписывается на месте.
        """
        current = await self.get_owned(offer_id, owner_id, for_update=True)

        if expected_fingerprint is not None and not etag_utils.compare(current.etag, expected_fingerprint):
            logger.info(f"ETag mismatch for offer {offer_id}: stored {current.etag}, got {expected_fingerprint}")
            raise ConflictError(current=current)

        if create_new_version:
            new_version = current.current_version + 1
            new_total = current.total_versions + 1
        else:
            new_version = current.current_version
            new_total = current.total_versions

        updated = await self.repoint(current, snapshot, new_version, new_total, owner_id)

        if create_new_version:
            await self.versions.append(
                offer_id,
                snapshot,
                version_number=new_version,
                change_type=ChangeType.MANUAL,
                description=description,
                author=owner_id,
            )
        elif not await self.versions.replace_snapshot(offer_id, new_version, snapshot):
            # Текущая версия виртуальная: она и так совпадает с предложением
            logger.debug(f"Offer {offer_id} has no stored version {new_version}, nothing to overwrite")

        return updated

    async def repoint(
        self,
        offer: Offer,
        snapshot: OfferSnapshot,
        current_version: int,
        total_versions: int,
        user_id: str,
    ) -> Offer:
        """Замена содержимого и указателя версии без записи в журнал версий"""
        updated = copy.deepcopy(offer)
        updated.apply_snapshot(snapshot, user_id, current_version, total_versions)
        return await self.save(updated, offer)

    async def save(self, updated: Offer, expected: Offer) -> Offer:
        """Запись состояния, если строка с момента чтения не изменилась"""
        if not await self.offers.save(updated, expected):
            logger.warning(f"Concurrent modification of offer {updated.id} detected on write")
            latest = await self.offers.get(updated.id)
            raise ConflictError(current=latest)
        return updated

    async def delete(self, offer_id: str, owner_id: str) -> bool:
        """Удаление предложения владельца вместе со всеми версиями"""
        offer = await self.offers.get(offer_id, for_update=True)
        if offer is None or not offer.is_owned_by(owner_id):
            return False

        await self.versions.delete_all(offer_id)
        return await self.offers.delete(offer_id, owner_id)
