import enum
import uuid
from sqlalchemy import (
    Column, String, Text, DateTime, ForeignKey, Index, UniqueConstraint, Uuid, func
)
from sqlalchemy.orm import relationship
from indexcheck.db.base import Base


class ItemStatus(str, enum.Enum):
    NOT_FETCHED = "NOT_FETCHED"
    INDEXED = "INDEXED"
    NOT_INDEXED = "NOT_INDEXED"
    ERROR = "ERROR"


class CampaignStatus(str, enum.Enum):
    READY = "READY"
    RUNNING = "RUNNING"
    COMPLETE = "COMPLETE"


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    status = Column(String, nullable=False, default=CampaignStatus.READY.value)  # READY|RUNNING|COMPLETE
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    items = relationship("UrlItem", back_populates="campaign", cascade="all,delete-orphan")


class UrlItem(Base):
    __tablename__ = "url_items"
    __table_args__ = (
        UniqueConstraint("campaign_id", "url", name="uq_url_items_campaign_url"),
        Index("ix_url_items_campaign_status", "campaign_id", "status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id = Column(
        Uuid(as_uuid=True), ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True
    )
    url = Column(Text, nullable=False)
    status = Column(String, nullable=False, default=ItemStatus.NOT_FETCHED.value)  # NOT_FETCHED|INDEXED|NOT_INDEXED|ERROR
    title = Column(String(500), nullable=True)
    snippet = Column(String(500), nullable=True)
    reason = Column(String(500), nullable=True)
    checked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    campaign = relationship("Campaign", back_populates="items")


class Setting(Base):
    """Per-user search provider credentials."""

    __tablename__ = "settings"

    user_id = Column(Uuid(as_uuid=True), primary_key=True)
    search_api_key = Column(Text, nullable=True)
    search_engine_id = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
