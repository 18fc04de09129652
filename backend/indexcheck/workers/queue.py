"""Job queue backends for index checks.

``CeleryQueue`` pushes jobs to the Redis broker for external workers;
``InProcessQueue`` runs them on a bounded thread pool in this process.
``create_queue`` picks one at startup.
"""
import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Callable, Iterable, Optional

from indexcheck.core.config import Settings, settings as default_settings
from indexcheck.workers.processor import IndexCheckJob

logger = logging.getLogger(__name__)


class QueueClosed(RuntimeError):
    pass


class JobQueue:
    backend = "base"

    def enqueue_index_check(self, job: IndexCheckJob) -> None:
        raise NotImplementedError

    def enqueue_index_check_bulk(self, jobs: Iterable[IndexCheckJob]) -> int:
        raise NotImplementedError

    def close(self) -> None:
        pass


class CeleryQueue(JobQueue):
    backend = "celery"

    def __init__(self, task=None, queue_name: str = default_settings.queue_name):
        if task is None:
            from indexcheck.workers.tasks import process_index_check_task as task
        self.task = task
        self.queue_name = queue_name

    def enqueue_index_check(self, job):
        self.task.apply_async(kwargs=job.to_payload(), queue=self.queue_name)

    def enqueue_index_check_bulk(self, jobs):
        n = 0
        for job in jobs:
            self.enqueue_index_check(job)
            n += 1
        logger.info("Queued %d index checks on %s", n, self.queue_name)
        return n


class InProcessQueue(JobQueue):
    """Runs jobs on a thread pool of ``concurrency`` workers.

    Enqueueing returns immediately. Nothing is durable: jobs still pending
    when the process dies are lost. ``drain()`` waits for everything
    submitted so far, ``close()`` drains and then refuses new jobs.
    """

    backend = "in-process"

    def __init__(self, processor: Callable[[IndexCheckJob], object], concurrency: int = 3):
        self.processor = processor
        self.concurrency = concurrency
        self._executor = ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="index-check")
        self._pending = set()
        self._lock = threading.Lock()
        self._closed = False

    def _run(self, job: IndexCheckJob) -> None:
        try:
            self.processor(job)
        except Exception:
            logger.exception("In-process job failed for item %s", job.item_id)

    def _discard(self, fut) -> None:
        with self._lock:
            self._pending.discard(fut)

    def enqueue_index_check(self, job):
        with self._lock:
            if self._closed:
                raise QueueClosed("queue is closed")
            fut = self._executor.submit(self._run, job)
            self._pending.add(fut)
        fut.add_done_callback(self._discard)

    def enqueue_index_check_bulk(self, jobs):
        n = 0
        for job in jobs:
            self.enqueue_index_check(job)
            n += 1
        logger.info("Queued %d index checks in-process", n)
        return n

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def drain(self, timeout: Optional[float] = None) -> bool:
        """Block until every submitted job has finished. False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                snapshot = set(self._pending)
            if not snapshot:
                return True
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = wait(snapshot, timeout=remaining)
            if not_done:
                return False

    def close(self) -> None:
        with self._lock:
            self._closed = True
        self.drain()
        self._executor.shutdown(wait=True)


def broker_available(url: str, timeout_s: float = 3.0) -> bool:
    from indexcheck.workers.celery_app import celery

    try:
        with celery.connection_for_write(url, connect_timeout=timeout_s) as conn:
            conn.ensure_connection(max_retries=1, interval_start=0)
        return True
    except Exception as e:
        logger.warning("Broker unreachable: %s", e)
        return False


def create_queue(
    processor: Callable[[IndexCheckJob], object],
    settings: Settings = default_settings,
    probe: Callable[[str], bool] = broker_available,
) -> JobQueue:
    if settings.redis_url:
        if probe(settings.redis_url):
            logger.info("Using Celery queue on %s", settings.queue_name)
            return CeleryQueue(queue_name=settings.queue_name)
        logger.warning("Falling back to in-process queue (broker unavailable)")
    else:
        logger.info("Using in-process queue (REDIS_URL not set)")
    return InProcessQueue(processor, concurrency=settings.queue_concurrency)
