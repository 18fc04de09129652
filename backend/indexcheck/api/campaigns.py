from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from indexcheck.api.deps import get_queue
from indexcheck.api.schemas import (
    AddUrlsRequest, CampaignListResponse, CampaignOut, CampaignStatsOut, CreateCampaignRequest,
    DeleteItemsRequest, DeleteItemsResponse, ItemListResponse, ItemOut, Pagination, RecheckRequest,
    RecheckResponse, UrlBatchResponse, UrlErrorOut,
)
from indexcheck.db.session import get_db
from indexcheck.services import campaigns as svc
from indexcheck.workers.queue import JobQueue

router = APIRouter(prefix="/campaigns", tags=["campaigns"])


def _campaign_out(campaign, stats: svc.CampaignStats) -> CampaignOut:
    return CampaignOut(
        id=str(campaign.id),
        name=campaign.name,
        status=campaign.status,
        created_at=campaign.created_at,
        stats=CampaignStatsOut(
            total=stats.total,
            indexed=stats.indexed,
            not_indexed=stats.not_indexed,
            errors=stats.errors,
            not_fetched=stats.not_fetched,
            fetched=stats.fetched,
            progress=stats.progress,
        ),
    )


def _pagination(page: svc.Page) -> Pagination:
    return Pagination(page=page.page, page_size=page.page_size, total=page.total, total_pages=page.total_pages)


def _batch_response(db: Session, result: svc.UrlBatchResult) -> UrlBatchResponse:
    return UrlBatchResponse(
        campaign=_campaign_out(result.campaign, svc.campaign_stats(db, result.campaign)),
        stats=result.stats,
        errors=[UrlErrorOut(line=e.line, url=e.url, error=e.error) for e in result.errors],
    )


@router.post("", response_model=UrlBatchResponse, status_code=201)
def create_campaign(payload: CreateCampaignRequest, db: Session = Depends(get_db)):
    result = svc.create_campaign(db, payload.user_id, payload.name, payload.urls)
    return _batch_response(db, result)


@router.get("", response_model=CampaignListResponse)
def list_campaigns(user_id: str, page: int = 1, page_size: int = 20, search: str = "", db: Session = Depends(get_db)):
    result = svc.list_campaigns(db, user_id, page=page, page_size=page_size, search=search)
    return CampaignListResponse(
        campaigns=[_campaign_out(c, s) for c, s in result.rows],
        pagination=_pagination(result),
    )


@router.get("/{campaign_id}", response_model=CampaignOut)
def get_campaign(campaign_id: str, user_id: str, db: Session = Depends(get_db)):
    campaign = svc.get_campaign(db, user_id, campaign_id)
    return _campaign_out(campaign, svc.campaign_stats(db, campaign))


@router.delete("/{campaign_id}")
def delete_campaign(campaign_id: str, user_id: str, db: Session = Depends(get_db)):
    svc.delete_campaign(db, user_id, campaign_id)
    return {"deleted": True}


@router.post("/{campaign_id}/urls", response_model=UrlBatchResponse, status_code=201)
def add_urls(campaign_id: str, payload: AddUrlsRequest, db: Session = Depends(get_db)):
    result = svc.add_urls(db, payload.user_id, campaign_id, payload.urls)
    return _batch_response(db, result)


@router.get("/{campaign_id}/items", response_model=ItemListResponse)
def list_items(
    campaign_id: str,
    user_id: str,
    status: str | None = None,
    search: str = "",
    page: int = 1,
    page_size: int = 50,
    db: Session = Depends(get_db),
):
    campaign = svc.get_campaign(db, user_id, campaign_id)
    result = svc.list_items(db, campaign, status=status, search=search, page=page, page_size=page_size)
    offset = (result.page - 1) * result.page_size
    return ItemListResponse(
        items=[
            ItemOut(
                id=str(item.id),
                number=offset + i,
                url=item.url,
                status=item.status,
                title=item.title,
                snippet=item.snippet,
                reason=item.reason,
                checked_at=item.checked_at,
                created_at=item.created_at,
            )
            for i, item in enumerate(result.rows, start=1)
        ],
        pagination=_pagination(result),
    )


@router.post("/{campaign_id}/items/delete", response_model=DeleteItemsResponse)
def delete_items(campaign_id: str, payload: DeleteItemsRequest, db: Session = Depends(get_db)):
    deleted = svc.delete_items(db, payload.user_id, campaign_id, payload.item_ids)
    return DeleteItemsResponse(deleted=deleted)


@router.post("/{campaign_id}/recheck", response_model=RecheckResponse, status_code=202)
def recheck(
    campaign_id: str,
    payload: RecheckRequest,
    db: Session = Depends(get_db),
    queue: JobQueue = Depends(get_queue),
):
    queued = svc.recheck(db, queue, payload.user_id, campaign_id, payload.item_ids)
    return RecheckResponse(queued=queued, message=f"Queued {queued} URLs for checking")
