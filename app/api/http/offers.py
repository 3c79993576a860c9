from fastapi import APIRouter, Depends, Header, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from typing import Optional

from app.api.http.auth import get_current_user
from app.core import etag as etag_utils
from app.core.errors import PreconditionRequiredError
from app.domains.identity.entities import User
from app.domains.offers.schemas import (
    OfferCreate, OfferUpdate, OfferResponse, OfferSummary, OfferListResponse,
    VersionSummary, VersionListResponse, VersionResponse, VersionCreateRequest,
    VersionCreatedResponse, RestoreRequest, RestoreResponse, PublishRequest,
    PublishResponse
)
from app.domains.offers.services import OfferService

router = APIRouter(prefix="/offers", tags=["offers"])


def get_offer_service(request: Request) -> OfferService:
    """Зависимость: сервис поверх хранилища приложения"""
    return OfferService(
        request.app.state.storage,
        public_base_url=request.app.state.settings.public_base_url,
    )


def _not_modified(if_none_match: Optional[str], current_etag: str) -> bool:
    return bool(if_none_match) and etag_utils.compare(if_none_match, current_etag)


@router.get("", response_model=OfferListResponse)
async def list_offers(
    response: Response,
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    order_by: Optional[str] = Query(None, alias="orderBy"),
    order: Optional[str] = Query(None),
    if_none_match: Optional[str] = Header(None),
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Получение списка предложений пользователя"""
    page = await offer_service.list_offers(
        user.id,
        status=status_filter,
        limit=limit,
        offset=offset,
        order_by=order_by,
        order=order,
    )

    body = OfferListResponse(
        offers=[OfferSummary.from_offer(offer) for offer in page.offers],
        total=page.total,
        limit=page.limit,
        offset=page.offset,
    )
    list_etag = etag_utils.generate(jsonable_encoder(body, by_alias=True))
    if _not_modified(if_none_match, list_etag):
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers={"ETag": list_etag})

    response.headers["ETag"] = list_etag
    return body


@router.post("", response_model=OfferResponse, status_code=status.HTTP_201_CREATED)
async def create_offer(
    offer_data: OfferCreate,
    response: Response,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Создание нового предложения"""
    offer = await offer_service.create_offer(user.id, offer_data.to_fields())

    response.headers["ETag"] = offer.etag
    return OfferResponse.from_offer(offer)


@router.get("/{offer_id}", response_model=OfferResponse)
async def get_offer(
    offer_id: str,
    response: Response,
    if_none_match: Optional[str] = Header(None),
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Получение предложения по ID"""
    offer = await offer_service.get_offer(offer_id, user.id)

    if _not_modified(if_none_match, offer.etag):
        return Response(status_code=status.HTTP_304_NOT_MODIFIED, headers={"ETag": offer.etag})

    response.headers["ETag"] = offer.etag
    return OfferResponse.from_offer(offer)


@router.put("/{offer_id}", response_model=OfferResponse)
async def update_offer(
    offer_id: str,
    update_data: OfferUpdate,
    response: Response,
    if_match: Optional[str] = Header(None),
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Полное обновление предложения (требуется If-Match)"""
    if not if_match:
        raise PreconditionRequiredError()

    offer = await offer_service.update_offer(
        offer_id,
        user.id,
        update_data.to_fields(),
        if_match=if_match,
    )

    response.headers["ETag"] = offer.etag
    return OfferResponse.from_offer(offer)


@router.delete("/{offer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_offer(
    offer_id: str,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Удаление предложения вместе со всеми версиями"""
    await offer_service.delete_offer(offer_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{offer_id}/versions", response_model=VersionListResponse)
async def get_versions(
    offer_id: str,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Получение истории версий"""
    offer, versions = await offer_service.get_versions(offer_id, user.id)

    return VersionListResponse(
        versions=[VersionSummary.from_version(version, offer.current_version) for version in versions]
    )


@router.post(
    "/{offer_id}/versions",
    response_model=VersionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_version(
    offer_id: str,
    version_data: Optional[VersionCreateRequest] = None,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Сохранение текущего состояния как новой версии"""
    description = version_data.description if version_data else ""
    version = await offer_service.create_version(offer_id, user.id, description or "")

    return VersionCreatedResponse(
        version=version.version_number,
        description=version.description,
        change_type=version.change_type,
        created_at=version.created_at,
    )


@router.get("/{offer_id}/versions/{version_number}", response_model=VersionResponse)
async def get_version(
    offer_id: str,
    version_number: int,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Получение конкретной версии"""
    version = await offer_service.get_version(offer_id, version_number, user.id)
    return VersionResponse.from_version(version)


@router.post("/{offer_id}/versions/{version_number}/restore", response_model=RestoreResponse)
async def restore_version(
    offer_id: str,
    version_number: int,
    response: Response,
    restore_data: Optional[RestoreRequest] = None,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Восстановление содержимого из версии"""
    create_backup = restore_data.create_backup_version if restore_data else False
    result = await offer_service.restore_version(
        offer_id, version_number, user.id, create_backup=create_backup
    )

    response.headers["ETag"] = result.offer.etag
    return RestoreResponse(
        restored_to_version=result.restored_to_version,
        new_current_version=result.backup_version,
        updated_at=result.offer.updated_at,
        etag=result.offer.etag,
    )


@router.post("/{offer_id}/versions/{version_number}/switch", response_model=OfferResponse)
async def switch_to_version(
    offer_id: str,
    version_number: int,
    response: Response,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Переключение на версию без создания новой"""
    offer = await offer_service.switch_to_version(offer_id, version_number, user.id)

    response.headers["ETag"] = offer.etag
    return OfferResponse.from_offer(offer)


@router.post("/{offer_id}/versions/{version_number}/publish", response_model=PublishResponse)
async def publish_version(
    offer_id: str,
    version_number: int,
    publish_data: Optional[PublishRequest] = None,
    user: User = Depends(get_current_user),
    offer_service: OfferService = Depends(get_offer_service),
):
    """Публикация (или снятие с публикации) версии"""
    published = publish_data.is_published if publish_data else True
    offer, version = await offer_service.set_version_published(
        offer_id, version_number, user.id, published=published
    )

    return PublishResponse(
        version=version.version_number,
        is_published=version.is_published,
        published_version=offer.published_version,
        published_at=offer.published_at,
        public_url=offer.public_url,
    )
