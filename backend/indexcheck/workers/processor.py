"""Runs one index-check job: credentials -> check -> persist -> aggregate.

Shared by the Celery task and the in-process queue.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from indexcheck.models.campaign import ItemStatus, UrlItem
from indexcheck.services.aggregator import update_campaign_status
from indexcheck.services.checker import REASON_LIMIT, CheckErrorKind, CheckResult, check_with_retry
from indexcheck.services.credentials import CredentialsError, CredentialStore

logger = logging.getLogger(__name__)

MISSING_SETTINGS_REASON = "Missing search API credentials in settings"
UNREADABLE_SETTINGS_REASON = "Failed to decrypt API credentials"


@dataclass(frozen=True)
class IndexCheckJob:
    user_id: str
    item_id: str
    campaign_id: str

    def to_payload(self) -> dict:
        return {"user_id": self.user_id, "item_id": self.item_id, "campaign_id": self.campaign_id}


def _now_utc():
    return datetime.now(timezone.utc)


def _write_result(db: Session, item_id: uuid.UUID, result: CheckResult) -> bool:
    res = db.execute(
        update(UrlItem)
        .where(UrlItem.id == item_id)
        .values(
            status=result.status.value,
            title=result.title or None,
            snippet=result.snippet or None,
            reason=result.reason or None,
            checked_at=_now_utc(),
        )
    )
    db.commit()
    return res.rowcount > 0


def _mark_error(db: Session, item_id: uuid.UUID, reason: str) -> bool:
    return _write_result(db, item_id, CheckResult(status=ItemStatus.ERROR, reason=reason[:REASON_LIMIT]))


def process_index_check(
    job: IndexCheckJob,
    *,
    session_factory: Callable[[], Session],
    credentials: CredentialStore,
    check: Callable[..., CheckResult] = check_with_retry,
) -> Optional[ItemStatus]:
    """Check one item and store the outcome.

    Never raises: unexpected failures end up as an ERROR on the item.
    Returns the stored item status, or None when the item is gone.
    """
    db: Session = session_factory()
    try:
        item_id = uuid.UUID(job.item_id)
        campaign_id = uuid.UUID(job.campaign_id)

        item = db.get(UrlItem, item_id)
        if not item:
            logger.warning("Item %s not found (campaign %s deleted?), skipping", job.item_id, job.campaign_id)
            return None
        url = item.url
        # the check can take a while; don't hold a connection open for it
        db.close()

        missing_reason = MISSING_SETTINGS_REASON
        try:
            creds = credentials.get_credentials(uuid.UUID(job.user_id))
        except CredentialsError as e:
            logger.warning("Unreadable credentials for user %s: %s", job.user_id, e)
            creds = None
            missing_reason = UNREADABLE_SETTINGS_REASON

        if creds is None:
            result = CheckResult.error(CheckErrorKind.MISSING_CREDENTIALS, missing_reason)
        else:
            result = check(url, creds.api_key, creds.engine_id)

        if not _write_result(db, item_id, result):
            logger.warning("Item %s deleted during check, result dropped", job.item_id)
            return None
        logger.info("Checked %s -> %s%s", url, result.status.value, f" ({result.reason})" if result.reason else "")

        update_campaign_status(db, campaign_id)
        return result.status

    except Exception as e:
        logger.exception("Index check failed for item %s", job.item_id)
        db.rollback()
        try:
            item_id = uuid.UUID(job.item_id)
            if _mark_error(db, item_id, str(e) or type(e).__name__):
                update_campaign_status(db, uuid.UUID(job.campaign_id))
                return ItemStatus.ERROR
        except Exception:
            logger.exception("Could not record failure for item %s", job.item_id)
        return None
    finally:
        db.close()
