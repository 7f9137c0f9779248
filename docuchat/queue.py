# docuchat/queue.py

import redis
from rq import Callback, Queue, Retry

from docuchat.config import settings
from docuchat.jobs import IngestionJob
from docuchat.utils.logging import logger

INGEST_TASK = "docuchat.worker.ingest_file"
INGEST_FAILURE_HANDLER = "docuchat.worker.mark_ingestion_failed"


class JobQueue:
    """Durable, at-least-once hand-off of ingestion jobs to the worker pool."""

    def __init__(self, queue: Queue):
        self.queue = queue

    @classmethod
    def from_url(cls, redis_url: str, name: str) -> "JobQueue":
        conn = redis.Redis.from_url(redis_url)
        return cls(Queue(name, connection=conn))

    def enqueue_ingestion(self, job: IngestionJob) -> str:
        rq_job = self.queue.enqueue(
            INGEST_TASK,
            job.to_payload(),
            retry=Retry(
                max=settings.ingest_max_retries,
                interval=settings.ingest_retry_intervals,
            ),
            job_timeout=settings.job_timeout,
            result_ttl=settings.result_ttl,
            failure_ttl=settings.failure_ttl,
            on_failure=Callback(INGEST_FAILURE_HANDLER),
            description=f"ingest file {job.file_id}",
        )
        logger.info(f"Ingestion job {rq_job.id} queued for file_id={job.file_id}, chat_id={job.chat_id}")
        return rq_job.id


_job_queue = None


def get_job_queue() -> JobQueue:
    global _job_queue
    if _job_queue is None:
        _job_queue = JobQueue.from_url(settings.redis_url, settings.queue_name)
        logger.info(f"Queue '{settings.queue_name}' ready")
    return _job_queue
