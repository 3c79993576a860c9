from app.db.repositories.base import (
    OfferRepositoryBase, OfferVersionRepositoryBase, OfferStorage, UnitOfWork
)
from app.db.repositories.offer_repository import (
    OfferRepository, OfferVersionRepository, SqlOfferStorage
)
from app.db.repositories.file_repository import (
    FileOfferRepository, FileOfferVersionRepository, FileOfferStorage
)

__all__ = [
    "OfferRepositoryBase",
    "OfferVersionRepositoryBase",
    "OfferStorage",
    "UnitOfWork",
    "OfferRepository",
    "OfferVersionRepository",
    "SqlOfferStorage",
    "FileOfferRepository",
    "FileOfferVersionRepository",
    "FileOfferStorage",
]
