from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import copy
import logging

from app.core.errors import (
    OfferNotFoundError, ValidationError, VersionNotFoundError
)
from app.db.repositories.base import OfferStorage
from app.domains.offers.entities import (
    ChangeType, Offer, OfferSnapshot, OfferStatus, OfferVersion
)
from app.domains.offers.stores import DEFAULT_LIMIT, DocumentStore

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
VALID_STATUSES = [status.value for status in OfferStatus]
VALID_ORDER_BY = ["createdAt", "updatedAt", "title"]
VALID_ORDER = ["asc", "desc"]


@dataclass
class OfferPage:
    offers: List[Offer]
    total: int
    limit: int
    offset: int


@dataclass
class RestoreResult:
    offer: Offer
    restored_to_version: int
    backup_version: Optional[int]


def _validate_offer_id(offer_id: Any) -> str:
    if not isinstance(offer_id, str) or not offer_id.strip():
        raise ValidationError("Offer ID is required")
    return offer_id.strip()


def _validate_owner_id(owner_id: Any) -> str:
    if not isinstance(owner_id, str) or not owner_id:
        raise ValidationError("User ID is required")
    return owner_id


def _validate_version_number(version_number: Any) -> int:
    if isinstance(version_number, bool) or not isinstance(version_number, int) or version_number < 1:
        raise ValidationError("Invalid version number")
    return version_number


def _validate_status(status: Any) -> str:
    if status not in VALID_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(VALID_STATUSES)}")
    return status


def _build_snapshot(fields: Dict[str, Any]) -> OfferSnapshot:
    """Проверка полей title/content/status и сборка снимка.

    Отсутствующий content превращается в {}, отсутствующий status в draft;
    явный null или список в content считаются ошибкой.
    """
    title = fields.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required and must be a non-empty string")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must not exceed {MAX_TITLE_LENGTH} characters")

    if "content" in fields:
        content = fields["content"]
        if not isinstance(content, dict):
            raise ValidationError("Content must be an object")
    else:
        content = {}

    status = fields.get("status")
    status = OfferStatus.DRAFT.value if status is None else _validate_status(status)

    return OfferSnapshot(title=title, content=copy.deepcopy(content), status=status)


def _coerce_int(value: Any, default: int) -> int:
    # Нечисловые и нулевые значения заменяются значением по умолчанию
    try:
        return int(value) or default
    except (TypeError, ValueError):
        return default


class OfferService:
    """Сервис версионируемых предложений"""

    def __init__(self, storage: OfferStorage, public_base_url: Optional[str] = None):
        self.storage = storage
        self.public_base_url = public_base_url

    async def create_offer(self, owner_id: str, fields: Dict[str, Any]) -> Offer:
        """Создание нового предложения"""
        owner_id = _validate_owner_id(owner_id)
        snapshot = _build_snapshot(fields)

        async with self.storage.transaction() as uow:
            offer = await DocumentStore(uow).create(
                owner_id, snapshot.title, snapshot.content, snapshot.status
            )

        logger.info(f"Offer {offer.id} created by {owner_id}")
        return offer

    async def get_offer(self, offer_id: str, owner_id: str) -> Offer:
        """Получение предложения по ID"""
        offer_id = _validate_offer_id(offer_id)
        owner_id = _validate_owner_id(owner_id)

        async with self.storage.transaction(read_only=True) as uow:
            return await DocumentStore(uow).get_owned(offer_id, owner_id)

    async def list_offers(
        self,
        owner_id: str,
        status: Optional[str] = None,
        limit: Any = None,
        offset: Any = None,
        order_by: Optional[str] = None,
        order: Optional[str] = None,
    ) -> OfferPage:
        """Получение предложений пользователя"""
        owner_id = _validate_owner_id(owner_id)
        if status:
            _validate_status(status)

        order_by = order_by or "updatedAt"
        if order_by not in VALID_ORDER_BY:
            raise ValidationError(f"Invalid orderBy. Must be one of: {', '.join(VALID_ORDER_BY)}")

        order = order or "desc"
        if order not in VALID_ORDER:
            raise ValidationError(f"Invalid order. Must be one of: {', '.join(VALID_ORDER)}")

        async with self.storage.transaction(read_only=True) as uow:
            offers, total, limit, offset = await DocumentStore(uow).list_by_owner(
                owner_id,
                status=status or None,
                limit=_coerce_int(limit, DEFAULT_LIMIT),
                offset=_coerce_int(offset, 0),
                order_by=order_by,
                order=order,
            )

        return OfferPage(offers=offers, total=total, limit=limit, offset=offset)

    async def delete_offer(self, offer_id: str, owner_id: str) -> bool:
        """Удаление предложения вместе с версиями"""
        offer_id = _validate_offer_id(offer_id)
        owner_id = _validate_owner_id(owner_id)

        async with self.storage.transaction() as uow:
            deleted = await DocumentStore(uow).delete(offer_id, owner_id)

        if not deleted:
            raise OfferNotFoundError(offer_id)

        logger.info(f"Offer {offer_id} deleted by {owner_id}")
        return True

    async def update_offer(
        self,
        offer_id: str,
        owner_id: str,
        fields: Dict[str, Any],
        if_match: Optional[str],
    ) -> Offer:
        """Полная замена содержимого с оптимистичной блокировкой по ETag"""
        offer_id = _validate_offer_id(offer_id)
        owner_id = _validate_owner_id(owner_id)
        snapshot = _build_snapshot(fields)
        create_version = bool(fields.get("create_version") or False)

        async with self.storage.transaction() as uow:
            offer = await DocumentStore(uow).update(
                offer_id,
                owner_id,
                snapshot,
                expected_fingerprint=if_match,
                create_new_version=create_version,
            )

        logger.info(
            f"Offer {offer_id} updated by {owner_id} "
            f"(version {offer.current_version}/{offer.total_versions}, etag {offer.etag})"
        )
        return offer

    async def create_version(self, offer_id: str, owner_id: str, description: str = "") -> OfferVersion:
        """Сохранение текущего состояния как новой версии (контрольная точка)"""
        offer_id = _validate_offer_id(offer_id)
        owner_id = _validate_owner_id(owner_id)
        if description is not None and not isinstance(description, str):
            raise ValidationError("Description must be a string")

        async with self.storage.transaction() as uow:
            documents = DocumentStore(uow)
            offer = await documents.get_owned(offer_id, owner_id, for_update=True)

            new_version_number = offer.current_version + 1
            version = await documents.versions.append(
                offer_id,
                offer.snapshot(),
                version_number=new_version_number,
                change_type=ChangeType.MANUAL,
                description=description or "",
                author=owner_id,
            )
            # Содержимое не меняется, переключается только указатель
            await documents.repoint(
                offer,
                offer.snapshot(),
                current_version=new_version_number,
                total_versions=offer.total_versions + 1,
                user_id=owner_id,
            )

        logger.info(f"Offer {offer_id}: version {new_version_number} created by {owner_id}")
        return version

    async def get_versions(self, offer_id: str, owner_id: str) -> Tuple[Offer, List[OfferVersion]]:
        """Получение версий предложения"""
        offer_id = _validate_offer_id(offer_id)
        owner_id = _validate_owner_id(owner_id)

        async with self.storage.transaction(read_only=True) as uow:
            documents = DocumentStore(uow)
            offer = await documents.get_owned(offer_id, owner_id)
            versions = await documents.versions.list(offer_id, offer=offer)

        return offer, versions

    async def get_version(self, offer_id: str, version_number: int, owner_id: str) -> OfferVersion:
        """Получение конкретной версии предложения"""
        offer_id = _validate_offer_id(offer_id)
        version_number = _validate_version_number(version_number)
        owner_id = _validate_owner_id(owner_id)

        async with self.storage.transaction(read_only=True) as uow:
            documents = DocumentStore(uow)
            offer = await documents.get_owned(offer_id, owner_id)
            version = await documents.versions.get(offer_id, version_number, offer=offer)

        if version is None:
            raise VersionNotFoundError(offer_id, version_number)
        return version

    async def restore_version(
        self,
        offer_id: str,
        version_number: int,
        owner_id: str,
        create_backup: bool = False,
    ) -> RestoreResult:
        """Восстановление содержимого из версии.

        При create_backup текущее состояние сначала сохраняется как новая
        версия с типом auto, и указатель переходит на нее. Само
        восстановление новую версию не создает.
        """
        offer_id = _validate_offer_id(offer_id)
        version_number = _validate_version_number(version_number)
        owner_id = _validate_owner_id(owner_id)

        async with self.storage.transaction() as uow:
            documents = DocumentStore(uow)
            offer = await documents.get_owned(offer_id, owner_id, for_update=True)

            target = await documents.versions.get(offer_id, version_number, offer=offer)
            if target is None:
                raise VersionNotFoundError(offer_id, version_number)

            current_version = offer.current_version
            total_versions = offer.total_versions
            backup_version = None

            if create_backup:
                backup_version = offer.current_version + 1
                await documents.versions.append(
                    offer_id,
                    offer.snapshot(),
                    version_number=backup_version,
                    change_type=ChangeType.AUTO,
                    description=f"Automatic backup before restoring version {version_number}",
                    author=owner_id,
                )
                current_version = backup_version
                total_versions += 1

            updated = await documents.repoint(
                offer, target.snapshot(), current_version, total_versions, owner_id
            )

        logger.info(
            f"Offer {offer_id} restored to version {version_number} by {owner_id}"
            + (f" (backup saved as version {backup_version})" if backup_version else "")
        )
        return RestoreResult(
            offer=updated,
            restored_to_version=version_number,
            backup_version=backup_version,
        )

    async def switch_to_version(self, offer_id: str, version_number: int, owner_id: str) -> Offer:
        """Переключение указателя текущей версии (без создания новой версии)"""
        offer_id = _validate_offer_id(offer_id)
        version_number = _validate_version_number(version_number)
        owner_id = _validate_owner_id(owner_id)

        async with self.storage.transaction() as uow:
            documents = DocumentStore(uow)
            offer = await documents.get_owned(offer_id, owner_id, for_update=True)

            target = await documents.versions.get(offer_id, version_number, offer=offer)
            if target is None:
                raise VersionNotFoundError(offer_id, version_number)

            updated = await documents.repoint(
                offer, target.snapshot(), version_number, offer.total_versions, owner_id
            )

        logger.info(f"Offer {offer_id} switched to version {version_number} by {owner_id}")
        return updated

    async def set_version_published(
        self,
        offer_id: str,
        version_number: int,
        owner_id: str,
        published: bool = True,
    ) -> Tuple[Offer, OfferVersion]:
        """Публикация версии (опубликованной может быть только одна)"""
        offer_id = _validate_offer_id(offer_id)
        version_number = _validate_version_number(version_number)
        owner_id = _validate_owner_id(owner_id)

        async with self.storage.transaction() as uow:
            documents = DocumentStore(uow)
            offer = await documents.get_owned(offer_id, owner_id, for_update=True)

            version = await documents.versions.get(offer_id, version_number, offer=offer)
            if version is None:
                raise VersionNotFoundError(offer_id, version_number)
            if version.is_virtual:
                version = await documents.versions.materialize(offer)

            await documents.versions.set_published(offer_id, version_number, published)
            version.is_published = published

            updated = copy.deepcopy(offer)
            if published:
                updated.mark_published(version_number, self._public_url(offer))
            elif offer.published_version == version_number:
                updated.mark_unpublished()
            updated = await documents.save(updated, offer)

        logger.info(
            f"Offer {offer_id}: version {version_number} "
            f"{'published' if published else 'unpublished'} by {owner_id}"
        )
        return updated, version

    def _public_url(self, offer: Offer) -> Optional[str]:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url.rstrip('/')}/offers/{offer.id}"
