from celery.signals import setup_logging

from indexcheck.core.logging import configure_logging
from indexcheck.db.session import SessionLocal
from indexcheck.services.credentials import SqlCredentialStore
from indexcheck.workers.celery_app import celery
from indexcheck.workers.processor import IndexCheckJob, process_index_check

_credentials = SqlCredentialStore(SessionLocal)


@setup_logging.connect
def _configure_worker_logging(**kwargs):
    configure_logging()


@celery.task(name="indexcheck.workers.tasks.process_index_check")
def process_index_check_task(user_id: str, item_id: str, campaign_id: str):
    # the checker retries transient provider errors itself, so no Celery-level retry here
    status = process_index_check(
        IndexCheckJob(user_id=user_id, item_id=item_id, campaign_id=campaign_id),
        session_factory=SessionLocal,
        credentials=_credentials,
    )
    return status.value if status else None
