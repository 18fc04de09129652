from datetime import datetime
from pydantic import BaseModel
from typing import Dict, Optional, List


class CreateCampaignRequest(BaseModel):
    user_id: str
    name: str
    urls: List[str]

class AddUrlsRequest(BaseModel):
    user_id: str
    urls: List[str]

class RecheckRequest(BaseModel):
    user_id: str
    item_ids: Optional[List[str]] = None

class DeleteItemsRequest(BaseModel):
    user_id: str
    item_ids: List[str]

class UrlErrorOut(BaseModel):
    line: int
    url: str
    error: str

class CampaignStatsOut(BaseModel):
    total: int
    indexed: int
    not_indexed: int
    errors: int
    not_fetched: int
    fetched: int
    progress: int

class CampaignOut(BaseModel):
    id: str
    name: str
    status: str
    created_at: Optional[datetime] = None
    stats: CampaignStatsOut

class UrlBatchResponse(BaseModel):
    campaign: CampaignOut
    stats: Dict[str, int]
    errors: List[UrlErrorOut]

class Pagination(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int

class CampaignListResponse(BaseModel):
    campaigns: List[CampaignOut]
    pagination: Pagination

class ItemOut(BaseModel):
    id: str
    number: int
    url: str
    status: str
    title: Optional[str] = None
    snippet: Optional[str] = None
    reason: Optional[str] = None
    checked_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

class ItemListResponse(BaseModel):
    items: List[ItemOut]
    pagination: Pagination

class RecheckResponse(BaseModel):
    queued: int
    message: str

class DeleteItemsResponse(BaseModel):
    deleted: int

class CredentialsRequest(BaseModel):
    user_id: str
    api_key: Optional[str] = None
    engine_id: Optional[str] = None

class CredentialsResponse(BaseModel):
    configured: bool
