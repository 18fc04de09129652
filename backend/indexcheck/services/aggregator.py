"""Campaign status derived from the status distribution of its items."""
import logging
import uuid
from typing import Optional

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from indexcheck.models.campaign import Campaign, CampaignStatus, ItemStatus, UrlItem

logger = logging.getLogger(__name__)


def compute_campaign_status(total: int, not_fetched: int) -> CampaignStatus:
    fetched = total - not_fetched
    if fetched <= 0:
        return CampaignStatus.READY
    if fetched >= total:
        return CampaignStatus.COMPLETE
    return CampaignStatus.RUNNING


def count_items(db: Session, campaign_id: uuid.UUID) -> tuple[int, int]:
    """Return (total, not_fetched) for a campaign."""
    row = db.execute(
        select(
            func.count(UrlItem.id),
            func.coalesce(func.sum(case((UrlItem.status == ItemStatus.NOT_FETCHED.value, 1), else_=0)), 0),
        ).where(UrlItem.campaign_id == campaign_id)
    ).one()
    return int(row[0]), int(row[1])


def update_campaign_status(db: Session, campaign_id: uuid.UUID) -> Optional[CampaignStatus]:
    """Recompute and store the campaign status; write only when it changed.

    Returns the computed status, or None when the campaign no longer exists.
    """
    current = db.execute(select(Campaign.status).where(Campaign.id == campaign_id)).scalar_one_or_none()
    if current is None:
        return None

    total, not_fetched = count_items(db, campaign_id)
    status = compute_campaign_status(total, not_fetched)
    if current != status.value:
        db.execute(update(Campaign).where(Campaign.id == campaign_id).values(status=status.value))
        db.commit()
        logger.info("Campaign %s status %s -> %s", campaign_id, current, status.value)
    return status
