"""Campaign flows: create, add URLs, recheck, stats, listing and deletion."""
import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from indexcheck.core.config import settings
from indexcheck.models.campaign import Campaign, CampaignStatus, ItemStatus, UrlItem
from indexcheck.services.aggregator import update_campaign_status
from indexcheck.services.urls import UrlError, deduplicate, parse_list
from indexcheck.workers.processor import IndexCheckJob
from indexcheck.workers.queue import JobQueue

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10
MAX_DELETE_BATCH = 1000
RECHECK_STATUSES = (ItemStatus.NOT_FETCHED.value, ItemStatus.NOT_INDEXED.value, ItemStatus.ERROR.value)


class CampaignError(ValueError):
    pass


class CampaignNotFound(LookupError):
    pass


@dataclass
class CampaignStats:
    total: int = 0
    indexed: int = 0
    not_indexed: int = 0
    errors: int = 0
    not_fetched: int = 0

    @property
    def fetched(self) -> int:
        return self.total - self.not_fetched

    @property
    def progress(self) -> int:
        return round(self.fetched / self.total * 100) if self.total else 0


@dataclass
class UrlBatchResult:
    campaign: Campaign
    stats: Dict[str, int]
    errors: List[UrlError] = field(default_factory=list)


@dataclass
class Page:
    rows: list
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


def _as_uuid(value, what: str = "id") -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise CampaignError(f"Invalid {what}: {value}")


def get_campaign(db: Session, user_id, campaign_id) -> Campaign:
    campaign = db.execute(
        select(Campaign).where(
            Campaign.id == _as_uuid(campaign_id, "campaign id"),
            Campaign.user_id == _as_uuid(user_id, "user id"),
        )
    ).scalar_one_or_none()
    if campaign is None:
        raise CampaignNotFound("Campaign not found")
    return campaign


def _stats_by_campaign(db: Session, campaign_ids: List[uuid.UUID]) -> Dict[uuid.UUID, CampaignStats]:
    out = {cid: CampaignStats() for cid in campaign_ids}
    if not campaign_ids:
        return out
    rows = db.execute(
        select(UrlItem.campaign_id, UrlItem.status, func.count(UrlItem.id))
        .where(UrlItem.campaign_id.in_(campaign_ids))
        .group_by(UrlItem.campaign_id, UrlItem.status)
    ).all()
    for cid, status, n in rows:
        s = out[cid]
        s.total += n
        if status == ItemStatus.INDEXED.value:
            s.indexed += n
        elif status == ItemStatus.NOT_INDEXED.value:
            s.not_indexed += n
        elif status == ItemStatus.ERROR.value:
            s.errors += n
        else:
            s.not_fetched += n
    return out


def campaign_stats(db: Session, campaign: Campaign) -> CampaignStats:
    return _stats_by_campaign(db, [campaign.id])[campaign.id]


def _parse_submission(urls: Iterable[str]):
    if urls is None or isinstance(urls, str):
        raise CampaignError("URLs array is required")
    urls = list(urls)
    if not urls:
        raise CampaignError("At least one URL is required")
    if len(urls) > settings.max_urls_per_request:
        raise CampaignError(f"Maximum {settings.max_urls_per_request:,} URLs per request")

    parsed = parse_list("\n".join(str(u) for u in urls))
    if not parsed.valid:
        raise CampaignError("No valid URLs provided")
    return urls, parsed, deduplicate(parsed.valid)


def create_campaign(db: Session, user_id, name: str, urls: Iterable[str]) -> UrlBatchResult:
    name = (name or "").strip()
    if not name:
        raise CampaignError("Campaign name is required")
    urls, parsed, dedup = _parse_submission(urls)

    campaign = Campaign(user_id=_as_uuid(user_id, "user id"), name=name, status=CampaignStatus.READY.value)
    campaign.items = [UrlItem(url=u, status=ItemStatus.NOT_FETCHED.value) for u in dedup.unique]
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    logger.info("Created campaign %s with %d URLs (%d invalid)", campaign.id, len(dedup.unique), len(parsed.errors))

    return UrlBatchResult(
        campaign=campaign,
        stats={
            "total": len(urls),
            "valid": len(parsed.valid),
            "unique": len(dedup.unique),
            "duplicates": dedup.duplicates,
            "errors": len(parsed.errors),
        },
        errors=parsed.errors[:MAX_REPORTED_ERRORS],
    )


def add_urls(db: Session, user_id, campaign_id, urls: Iterable[str]) -> UrlBatchResult:
    campaign = get_campaign(db, user_id, campaign_id)
    urls, parsed, dedup = _parse_submission(urls)

    existing = set(db.execute(select(UrlItem.url).where(UrlItem.campaign_id == campaign.id)).scalars())
    if len(existing) + len(urls) > settings.max_urls_per_campaign:
        raise CampaignError(
            f"Campaign would exceed maximum size of {settings.max_urls_per_campaign:,} URLs (current: {len(existing)})"
        )

    new_urls = [u for u in dedup.unique if u not in existing]
    if not new_urls:
        raise CampaignError("All provided URLs already exist in this campaign")

    db.add_all([UrlItem(campaign_id=campaign.id, url=u, status=ItemStatus.NOT_FETCHED.value) for u in new_urls])
    db.commit()
    update_campaign_status(db, campaign.id)
    db.refresh(campaign)

    return UrlBatchResult(
        campaign=campaign,
        stats={
            "submitted": len(urls),
            "valid": len(parsed.valid),
            "unique": len(dedup.unique),
            "duplicates_in_submission": dedup.duplicates,
            "already_in_campaign": len(dedup.unique) - len(new_urls),
            "added": len(new_urls),
            "errors": len(parsed.errors),
        },
        errors=parsed.errors[:MAX_REPORTED_ERRORS],
    )


def recheck(db: Session, queue: JobQueue, user_id, campaign_id, item_ids: Optional[List] = None) -> int:
    """Queue index checks for the given items, or for every unfinished one."""
    campaign = get_campaign(db, user_id, campaign_id)

    q = select(UrlItem.id).where(UrlItem.campaign_id == campaign.id)
    if item_ids is not None:
        ids = [_as_uuid(i, "item id") for i in item_ids]
        found = list(db.execute(q.where(UrlItem.id.in_(ids))).scalars()) if ids else []
        if not found:
            raise CampaignError("No valid items found to recheck")
    else:
        found = list(db.execute(q.where(UrlItem.status.in_(RECHECK_STATUSES))).scalars())
        if not found:
            raise CampaignError("No items to recheck (all items already indexed)")

    db.execute(update(Campaign).where(Campaign.id == campaign.id).values(status=CampaignStatus.RUNNING.value))
    db.commit()

    jobs = [IndexCheckJob(user_id=str(campaign.user_id), item_id=str(i), campaign_id=str(campaign.id)) for i in found]
    try:
        return queue.enqueue_index_check_bulk(jobs)
    except Exception:
        logger.exception("Enqueue failed for campaign %s", campaign.id)
        db.rollback()
        update_campaign_status(db, campaign.id)
        raise


def list_campaigns(db: Session, user_id, page: int = 1, page_size: int = 20, search: str = "") -> Page:
    page = max(page, 1)
    page_size = min(max(page_size, 1), 100)
    where = [Campaign.user_id == _as_uuid(user_id, "user id")]
    if search:
        where.append(Campaign.name.contains(search))

    total = db.execute(select(func.count(Campaign.id)).where(*where)).scalar_one()
    campaigns = list(
        db.execute(
            select(Campaign).where(*where).order_by(Campaign.created_at.desc())
            .offset((page - 1) * page_size).limit(page_size)
        ).scalars()
    )
    stats = _stats_by_campaign(db, [c.id for c in campaigns])
    return Page(rows=[(c, stats[c.id]) for c in campaigns], page=page, page_size=page_size, total=total)


def list_items(
    db: Session,
    campaign: Campaign,
    status: Optional[str] = None,
    search: str = "",
    page: int = 1,
    page_size: int = 50,
) -> Page:
    page = max(page, 1)
    page_size = min(max(page_size, 1), 500)
    where = [UrlItem.campaign_id == campaign.id]
    if status in ItemStatus.__members__:
        where.append(UrlItem.status == status)
    if search:
        where.append(UrlItem.url.contains(search))

    total = db.execute(select(func.count(UrlItem.id)).where(*where)).scalar_one()
    items = list(
        db.execute(
            select(UrlItem).where(*where).order_by(UrlItem.status, UrlItem.created_at)
            .offset((page - 1) * page_size).limit(page_size)
        ).scalars()
    )
    return Page(rows=items, page=page, page_size=page_size, total=total)


def delete_items(db: Session, user_id, campaign_id, item_ids: List) -> int:
    campaign = get_campaign(db, user_id, campaign_id)
    if not item_ids:
        raise CampaignError("Item IDs array is required")
    if len(item_ids) > MAX_DELETE_BATCH:
        raise CampaignError(f"Maximum {MAX_DELETE_BATCH} items can be deleted at once")
    ids = [_as_uuid(i, "item id") for i in item_ids]

    res = db.execute(delete(UrlItem).where(UrlItem.id.in_(ids), UrlItem.campaign_id == campaign.id))
    db.commit()
    update_campaign_status(db, campaign.id)
    return res.rowcount


def delete_campaign(db: Session, user_id, campaign_id) -> None:
    campaign = get_campaign(db, user_id, campaign_id)
    db.execute(delete(UrlItem).where(UrlItem.campaign_id == campaign.id))
    db.execute(delete(Campaign).where(Campaign.id == campaign.id))
    db.commit()
    logger.info("Deleted campaign %s", campaign.id)
