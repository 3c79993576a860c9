from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional
from datetime import datetime


class CamelModel(BaseModel):
    """Базовая схема: JSON в camelCase, атрибуты в snake_case"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class OfferCreate(CamelModel):
    """Схема для создания предложения.

    Типы полей намеренно свободные: проверка выполняется в сервисе, чтобы
    ошибки имели единый формат validation_error.
    """
    title: Optional[Any] = None
    content: Optional[Any] = None
    status: Optional[Any] = None

    def to_fields(self) -> Dict[str, Any]:
        # exclude_unset отличает отсутствующий content от явного null
        return self.model_dump(exclude_unset=True)


class OfferUpdate(OfferCreate):
    """Схема для полной замены предложения"""
    create_version: Optional[bool] = False


class VersionInfo(CamelModel):
    current: int
    total: int
    is_latest: bool
    created_at: datetime
    updated_at: datetime
    last_modified_by: Optional[str] = None
    has_unpublished_changes: bool = False


class OfferResponse(CamelModel):
    """Схема для ответа с данными предложения"""
    id: str
    owner_id: str
    title: str
    content: Dict[str, Any]
    status: str
    current_version: int
    total_versions: int
    version: int
    etag: str
    created_at: datetime
    updated_at: datetime
    last_modified_by: Optional[str] = None
    is_published: bool = False
    published_version: Optional[int] = None
    published_at: Optional[datetime] = None
    public_url: Optional[str] = None
    has_unpublished_changes: bool = False
    version_info: VersionInfo

    @classmethod
    def from_offer(cls, offer) -> "OfferResponse":
        return cls(
            id=offer.id,
            owner_id=offer.owner_id,
            title=offer.title,
            content=offer.content,
            status=offer.status,
            current_version=offer.current_version,
            total_versions=offer.total_versions,
            version=offer.current_version,
            etag=offer.etag,
            created_at=offer.created_at,
            updated_at=offer.updated_at,
            last_modified_by=offer.last_modified_by,
            is_published=offer.is_published,
            published_version=offer.published_version,
            published_at=offer.published_at,
            public_url=offer.public_url,
            has_unpublished_changes=offer.has_unpublished_changes,
            version_info=VersionInfo(
                current=offer.current_version,
                total=offer.total_versions,
                is_latest=offer.current_version == offer.total_versions,
                created_at=offer.created_at,
                updated_at=offer.updated_at,
                last_modified_by=offer.last_modified_by,
                has_unpublished_changes=offer.has_unpublished_changes,
            ),
        )


class OfferSummary(CamelModel):
    """Краткое описание предложения для списка"""
    id: str
    title: str
    status: str
    version: int
    created_at: datetime
    updated_at: datetime
    has_unpublished_changes: bool = False

    @classmethod
    def from_offer(cls, offer) -> "OfferSummary":
        return cls(
            id=offer.id,
            title=offer.title,
            status=offer.status,
            version=offer.current_version,
            created_at=offer.created_at,
            updated_at=offer.updated_at,
            has_unpublished_changes=offer.has_unpublished_changes,
        )


class OfferListResponse(CamelModel):
    """Схема для списка предложений"""
    offers: List[OfferSummary]
    total: int
    limit: int
    offset: int


class VersionSummary(CamelModel):
    version: int
    change_type: str
    description: str
    created_at: datetime
    created_by: Optional[str] = None
    is_current: bool
    is_published: bool

    @classmethod
    def from_version(cls, version, current_version: int) -> "VersionSummary":
        return cls(
            version=version.version_number,
            change_type=version.change_type,
            description=version.description,
            created_at=version.created_at,
            created_by=version.created_by,
            is_current=version.version_number == current_version,
            is_published=version.is_published,
        )


class VersionListResponse(CamelModel):
    """Схема для списка версий"""
    versions: List[VersionSummary]


class VersionResponse(CamelModel):
    """Полный снимок версии"""
    id: str
    offer_id: str
    version: int
    title: str
    content: Dict[str, Any]
    status: str
    change_type: str
    description: str
    created_at: datetime
    created_by: Optional[str] = None
    is_published: bool
    is_virtual: bool = False

    @classmethod
    def from_version(cls, version) -> "VersionResponse":
        return cls(
            id=version.id,
            offer_id=version.offer_id,
            version=version.version_number,
            title=version.title,
            content=version.content,
            status=version.status,
            change_type=version.change_type,
            description=version.description,
            created_at=version.created_at,
            created_by=version.created_by,
            is_published=version.is_published,
            is_virtual=version.is_virtual,
        )


class VersionCreateRequest(CamelModel):
    description: Optional[str] = ""


class VersionCreatedResponse(CamelModel):
    version: int
    description: str
    change_type: str
    created_at: datetime


class RestoreRequest(CamelModel):
    create_backup_version: bool = False


class RestoreResponse(CamelModel):
    restored_to_version: int
    new_current_version: Optional[int] = None
    updated_at: datetime
    etag: str


class PublishRequest(CamelModel):
    is_published: bool = True


class PublishResponse(CamelModel):
    version: int
    is_published: bool
    published_version: Optional[int] = None
    published_at: Optional[datetime] = None
    public_url: Optional[str] = None


class ErrorResponse(CamelModel):
    """Тело ответа с ошибкой"""
    error: str
    message: str
    conflict_details: Optional[Dict[str, Any]] = None
    resolution_options: Optional[List[Dict[str, str]]] = None
