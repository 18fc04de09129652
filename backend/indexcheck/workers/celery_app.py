from celery import Celery
from indexcheck.core.config import settings

celery = Celery(
    "indexcheck",
    broker=settings.redis_url or None,
    backend=settings.redis_url or None,
    include=["indexcheck.workers.tasks"],
)

celery.conf.task_routes = {"indexcheck.workers.tasks.*": {"queue": settings.queue_name}}
celery.conf.task_default_queue = settings.queue_name
celery.conf.worker_concurrency = settings.queue_concurrency
# at-least-once: a job is only acked after it ran
celery.conf.task_acks_late = True
celery.conf.task_reject_on_worker_lost = True
celery.conf.worker_prefetch_multiplier = 1
celery.conf.task_ignore_result = True
