from app.db.base import Base
from app.db.models.offer import Offer, OfferVersion

__all__ = [
    "Base",
    "Offer",
    "OfferVersion",
]
