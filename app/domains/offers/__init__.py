from app.domains.offers.entities import (
    ChangeType, Offer, OfferSnapshot, OfferStatus, OfferVersion
)
from app.domains.offers.schemas import (
    OfferCreate, OfferUpdate, OfferResponse, OfferSummary, OfferListResponse,
    VersionSummary, VersionListResponse, VersionResponse, VersionCreateRequest,
    VersionCreatedResponse, RestoreRequest, RestoreResponse, PublishRequest,
    PublishResponse, ErrorResponse
)

__all__ = [
    "ChangeType", "Offer", "OfferSnapshot", "OfferStatus", "OfferVersion",
    "OfferCreate", "OfferUpdate", "OfferResponse", "OfferSummary", "OfferListResponse",
    "VersionSummary", "VersionListResponse", "VersionResponse", "VersionCreateRequest",
    "VersionCreatedResponse", "RestoreRequest", "RestoreResponse", "PublishRequest",
    "PublishResponse", "ErrorResponse",
]
