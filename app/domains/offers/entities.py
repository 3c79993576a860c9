import copy
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from app.core import etag as etag_utils


class OfferStatus(str, Enum):
    """Статусы предложения"""
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class ChangeType(str, Enum):
    """Тип изменения: ручная версия или автоматический backup"""
    MANUAL = "manual"
    AUTO = "auto"


INITIAL_VERSION_DESCRIPTION = "Initial version"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class OfferSnapshot:
    """Семантический снимок предложения: всё, от чего зависит ETag"""
    title: str
    content: Dict[str, Any] = field(default_factory=dict)
    status: str = OfferStatus.DRAFT.value

    def fingerprint(self) -> str:
        return etag_utils.for_offer(self.title, self.content, self.status)


class Offer:
    """Сущность предложения (документа) с указателем на текущую версию"""

    def __init__(
        self,
        id: str,
        owner_id: str,
        title: str,
        content: Optional[Dict[str, Any]] = None,
        status: str = OfferStatus.DRAFT.value,
        current_version: int = 1,
        total_versions: int = 1,
        etag: Optional[str] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        last_modified_by: Optional[str] = None,
        is_published: bool = False,
        published_version: Optional[int] = None,
        published_at: Optional[datetime] = None,
        public_url: Optional[str] = None,
        has_unpublished_changes: bool = False,
    ):
        self.id = id
        self.owner_id = owner_id
        self.title = title
        self.content = content if content is not None else {}
        self.status = status
        self.current_version = current_version
        self.total_versions = total_versions
        self.etag = etag or etag_utils.for_offer(title, self.content, status)
        self.created_at = created_at or _utcnow()
        self.updated_at = updated_at or self.created_at
        self.last_modified_by = last_modified_by or owner_id
        self.is_published = is_published
        self.published_version = published_version
        self.published_at = published_at
        self.public_url = public_url
        self.has_unpublished_changes = has_unpublished_changes

    @classmethod
    def create_offer(cls, owner_id: str, snapshot: OfferSnapshot) -> "Offer":
        """Создание нового предложения с версией 1"""
        return cls(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            title=snapshot.title,
            content=copy.deepcopy(snapshot.content),
            status=snapshot.status,
            etag=snapshot.fingerprint(),
        )

    def snapshot(self) -> OfferSnapshot:
        return OfferSnapshot(
            title=self.title,
            content=copy.deepcopy(self.content),
            status=self.status,
        )

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def apply_snapshot(
        self,
        snapshot: OfferSnapshot,
        user_id: str,
        current_version: Optional[int] = None,
        total_versions: Optional[int] = None,
    ) -> None:
        """Замена содержимого и пересчет ETag"""
        new_etag = snapshot.fingerprint()
        if self.is_published and new_etag != self.etag:
            self.has_unpublished_changes = True

        self.title = snapshot.title
        self.content = copy.deepcopy(snapshot.content)
        self.status = snapshot.status
        self.etag = new_etag
        if current_version is not None:
            self.current_version = current_version
        if total_versions is not None:
            self.total_versions = total_versions
        self.updated_at = _utcnow()
        self.last_modified_by = user_id

    def mark_published(self, version_number: int, public_url: Optional[str]) -> None:
        self.is_published = True
        self.published_version = version_number
        self.published_at = _utcnow()
        self.public_url = public_url
        self.has_unpublished_changes = False
        self.updated_at = self.published_at

    def mark_unpublished(self) -> None:
        self.is_published = False
        self.published_version = None
        self.published_at = None
        self.public_url = None
        self.has_unpublished_changes = False
        self.updated_at = _utcnow()

    def __eq__(self, other) -> bool:
        if not isinstance(other, Offer):
            return False
        return self.id == other.id

    def __repr__(self) -> str:
        return f"Offer(id={self.id}, title={self.title}, version={self.current_version}/{self.total_versions})"


class OfferVersion:
    """Неизменяемый исторический снимок предложения"""

    def __init__(
        self,
        id: str,
        offer_id: str,
        version_number: int,
        title: str,
        content: Dict[str, Any],
        status: str,
        change_type: str = ChangeType.MANUAL.value,
        description: str = "",
        created_at: Optional[datetime] = None,
        created_by: Optional[str] = None,
        is_published: bool = False,
        is_virtual: bool = False,
    ):
        self.id = id
        self.offer_id = offer_id
        self.version_number = version_number
        self.title = title
        self.content = content
        self.status = status
        self.change_type = change_type
        self.description = description
        self.created_at = created_at or _utcnow()
        self.created_by = created_by
        self.is_published = is_published
        self.is_virtual = is_virtual

    @classmethod
    def create_version(
        cls,
        offer_id: str,
        snapshot: OfferSnapshot,
        version_number: int,
        created_by: str,
        change_type: ChangeType = ChangeType.MANUAL,
        description: str = "",
    ) -> "OfferVersion":
        """Создание новой версии предложения"""
        return cls(
            id=str(uuid.uuid4()),
            offer_id=offer_id,
            version_number=version_number,
            title=snapshot.title,
            content=copy.deepcopy(snapshot.content),
            status=snapshot.status,
            change_type=ChangeType(change_type).value,
            description=description or "",
            created_by=created_by,
        )

    @classmethod
    def virtual_for(cls, offer: Offer) -> "OfferVersion":
        """Виртуальная версия 1 для предложения без записей о версиях.

        Синтезируется только при чтении и никогда не сохраняется.
        """
        return cls(
            id=f"version_virtual_{offer.id}_1",
            offer_id=offer.id,
            version_number=1,
            title=offer.title,
            content=copy.deepcopy(offer.content),
            status=offer.status,
            change_type=ChangeType.MANUAL.value,
            description=INITIAL_VERSION_DESCRIPTION,
            created_at=offer.created_at,
            created_by=offer.last_modified_by,
            is_published=offer.is_published,
            is_virtual=True,
        )

    def snapshot(self) -> OfferSnapshot:
        return OfferSnapshot(
            title=self.title,
            content=copy.deepcopy(self.content),
            status=self.status,
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, OfferVersion):
            return False
        return self.id == other.id

    def __repr__(self) -> str:
        return f"OfferVersion(id={self.id}, offer_id={self.offer_id}, version={self.version_number})"
