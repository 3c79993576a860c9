"""Общий интерфейс хранилищ предложений.

Реляционное и файловое хранилища реализуют одни и те же операции и
одинаковые гарантии: всё, что выполняется внутри ``transaction()``,
применяется целиком или не применяется вовсе.
Транзакция с ``read_only=True`` только читает данные.
"""
from abc import ABC, abstractmethod
from typing import AsyncContextManager, List, Optional, Tuple

from app.domains.offers.entities import Offer, OfferSnapshot, OfferVersion


class OfferRepositoryBase(ABC):
    """Операции над записями предложений"""

    @abstractmethod
    async def add(self, offer: Offer) -> Offer:
        ...

    @abstractmethod
    async def get(self, offer_id: str, for_update: bool = False) -> Optional[Offer]:
        ...

    @abstractmethod
    async def list_by_owner(
        self,
        owner_id: str,
        status: Optional[str],
        limit: int,
        offset: int,
        order_by: str,
        order: str,
    ) -> Tuple[List[Offer], int]:
        ...

    @abstractmethod
    async def save(self, offer: Offer, expected: Offer) -> bool:
        """Запись состояния offer, только если в хранилище всё еще expected.

        Возвращает False, если строку успели изменить (compare-and-swap).
        """

    @abstractmethod
    async def delete(self, offer_id: str, owner_id: str) -> bool:
        ...


class OfferVersionRepositoryBase(ABC):
    """Операции над журналом версий"""

    @abstractmethod
    async def add(self, version: OfferVersion) -> OfferVersion:
        """Добавление версии; DuplicateVersionError при повторном номере"""

    @abstractmethod
    async def get(self, offer_id: str, version_number: int) -> Optional[OfferVersion]:
        ...

    @abstractmethod
    async def list(self, offer_id: str) -> List[OfferVersion]:
        """Версии от новых к старым (по created_at)"""

    @abstractmethod
    async def replace_snapshot(self, offer_id: str, version_number: int, snapshot: OfferSnapshot) -> bool:
        ...

    @abstractmethod
    async def set_published(self, offer_id: str, version_number: int, published: bool) -> bool:
        ...

    @abstractmethod
    async def delete_all(self, offer_id: str) -> int:
        ...


class UnitOfWork(ABC):
    """Транзакция хранилища: репозитории работают в одной изолированной транзакции"""

    offers: OfferRepositoryBase
    versions: OfferVersionRepositoryBase


class OfferStorage(ABC):
    """Хранилище предложений; жизненным циклом владеет приложение"""

    @abstractmethod
    async def init(self) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    @abstractmethod
    def transaction(self, read_only: bool = False) -> AsyncContextManager[UnitOfWork]:
        ...

    @abstractmethod
    async def health_check(self) -> dict:
        ...
