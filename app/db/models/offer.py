from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.db.base import Base, UTCDateTime, utcnow

# JSONB на PostgreSQL, обычный JSON на остальных СУБД
JSONContent = JSON().with_variant(JSONB(), "postgresql")


class Offer(Base):
    __tablename__ = "offers"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(JSONContent, nullable=False, default=dict)
    status = Column(String(20), nullable=False, default="draft")
    current_version = Column(Integer, nullable=False, default=1)
    total_versions = Column(Integer, nullable=False, default=1)
    etag = Column(String(16), nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow)
    last_modified_by = Column(String(64), nullable=False)

    is_published = Column(Boolean, nullable=False, default=False)
    published_version = Column(Integer, nullable=True)
    published_at = Column(UTCDateTime, nullable=True)
    public_url = Column(Text, nullable=True)
    has_unpublished_changes = Column(Boolean, nullable=False, default=False)

    # Relationships
    versions = relationship(
        "OfferVersion",
        back_populates="offer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("idx_offers_owner_status", "owner_id", "status"),
    )


class OfferVersion(Base):
    __tablename__ = "offer_versions"

    id = Column(String(36), primary_key=True)
    offer_id = Column(String(36), ForeignKey("offers.id", ondelete="CASCADE"), nullable=False)
    version_number = Column(Integer, nullable=False)
    title = Column(String(200), nullable=False)
    content = Column(JSONContent, nullable=False, default=dict)
    status = Column(String(20), nullable=False)
    change_type = Column(String(10), nullable=False, default="manual")  # manual/auto
    description = Column(Text, nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    created_by = Column(String(64), nullable=False)
    is_published = Column(Boolean, nullable=False, default=False)

    # Relationships
    offer = relationship("Offer", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("offer_id", "version_number", name="uq_offer_versions_offer_version"),
    )
