#!/usr/bin/env python3
"""
rq worker pool for PDF ingestion.

Usage:
    python -m docuchat.worker

Concurrency and the redis connection come from settings
(WORKER_CONCURRENCY, REDIS_URL).
"""

import redis
from rq import Queue, get_current_job
from rq.worker_pool import WorkerPool

from docuchat.config import settings
from docuchat.db import SessionLocal
from docuchat.errors import InvalidJobError
from docuchat.ingestion import IngestionPipeline
from docuchat.jobs import IngestionJob
from docuchat.models import FileStatus
from docuchat.services.embeddings import get_embedder
from docuchat.services.file_status import set_file_status
from docuchat.services.vector_store import PgVectorStore
from docuchat.utils.logging import logger

_pipeline = None


def get_pipeline() -> IngestionPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = IngestionPipeline(
            session_factory=SessionLocal,
            vector_store=PgVectorStore(SessionLocal),
            embedder=get_embedder(),
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            temp_dir=settings.temp_dir,
            download_timeout=settings.download_timeout,
        )
    return _pipeline


def _retries_left() -> int:
    current = get_current_job()
    if current is None or not current.retries_left:
        return 0
    return current.retries_left


def ingest_file(payload) -> int:
    """rq entry point; ``payload`` is the JSON string built by IngestionJob.to_payload."""
    logger.info(f"New ingestion job received: {payload}")
    try:
        job = IngestionJob.from_payload(payload)
    except InvalidJobError as exc:
        logger.error(f"Rejected ingestion job: {exc}")
        if exc.file_id:
            with SessionLocal() as db:
                set_file_status(db, exc.file_id, FileStatus.ERROR)
        raise

    return get_pipeline().process(job, retries_left=_retries_left())


def mark_ingestion_failed(job, connection, exc_type, exc_value, tb):
    """
    rq on_failure callback. Runs after every failed attempt and for jobs
    rq abandons (killed work horse), so the File reaches ERROR even when
    ``ingest_file`` never got to its own except block.
    """
    if job.retries_left:
        logger.info(f"Ingestion job {job.id} failed, {job.retries_left} retries left")
        return

    payload = job.args[0] if job.args else None
    try:
        file_id = IngestionJob.from_payload(payload).file_id
    except InvalidJobError as exc:
        file_id = exc.file_id
    if not file_id:
        logger.error(f"Ingestion job {job.id} exhausted with no fileId to mark")
        return

    logger.error(f"Ingestion job {job.id} exhausted its retries ({exc_value!r}), marking file {file_id} ERROR")
    with SessionLocal() as db:
        set_file_status(db, file_id, FileStatus.ERROR)


def main() -> None:
    logger.info(
        f"Starting rq worker pool: queue={settings.queue_name}, "
        f"concurrency={settings.worker_concurrency}"
    )
    conn = redis.Redis.from_url(settings.redis_url)
    conn.ping()
    logger.info("Connected to Redis")

    queue = Queue(settings.queue_name, connection=conn)
    pool = WorkerPool([queue], connection=conn, num_workers=settings.worker_concurrency)
    pool.start()


if __name__ == "__main__":
    main()
