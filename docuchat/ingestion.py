# docuchat/ingestion.py
"""
Ingestion pipeline: turn one stored PDF into scoped, indexed chunks and
report the outcome through the File's status.

    mark PROCESSING -> download -> parse/split -> tag -> embed -> index
                    -> DONE | ERROR, temp file always removed
"""

from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from docuchat.errors import IngestionError, InvalidJobError
from docuchat.jobs import IngestionJob
from docuchat.models import File, FileStatus
from docuchat.services.documents import ChunkDraft, build_chunks, load_pdf_pages, make_splitter
from docuchat.services.downloads import download_to_path, temporary_pdf
from docuchat.services.file_status import set_file_status
from docuchat.services.vector_store import ChunkScope, IndexedChunk
from docuchat.utils.logging import logger


class IngestionPipeline:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        vector_store,
        embedder,
        downloader: Callable = download_to_path,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        temp_dir: Optional[str] = None,
        download_timeout: float = 60.0,
    ):
        self.session_factory = session_factory
        self.vector_store = vector_store
        self.embedder = embedder
        self.downloader = downloader
        self.splitter = make_splitter(chunk_size, chunk_overlap)
        self.temp_dir = temp_dir
        self.download_timeout = download_timeout

    def process(self, job: IngestionJob, retries_left: int = 0) -> int:
        """
        Run one delivery of ``job``. Returns the number of chunks indexed.

        ``retries_left`` is how many more attempts the queue will make if this
        one raises; transient failures only mark the file ERROR on the last one.
        Every failure is re-raised so the queue records it.
        """
        tag = f"[INGEST {job.file_id}]"
        logger.info(f"{tag} Worker started, chat_id={job.chat_id}, retries_left={retries_left}")

        try:
            source = self._begin(job)
        except IngestionError as exc:
            self._fail(job, exc)
            raise
        if source is None:
            return 0

        try:
            with temporary_pdf(job.file_id, self.temp_dir) as path:
                logger.info(f"{tag} Downloading {job.url}")
                self.downloader(job.url, path, timeout=self.download_timeout)

                pages = load_pdf_pages(path)
                chunks = build_chunks(pages, job, source, splitter=self.splitter)
                indexed = self._index(job, chunks)
        except Exception as exc:
            if getattr(exc, "retryable", False) and retries_left > 0:
                logger.warning(f"{tag} Attempt failed, {retries_left} retries left: {exc}")
            else:
                logger.exception(f"{tag} Job failed: {exc}")
                self._fail(job, exc)
            raise

        if not self._finish(job):
            # File was deleted while we worked; do not leave orphaned chunks.
            logger.warning(f"{tag} File row gone before completion, dropping its chunks")
            self.vector_store.delete(ChunkScope(job.chat_id, job.file_id))
            return 0

        logger.info(f"{tag} Job marked as DONE with {indexed} chunks")
        return indexed

    def _begin(self, job: IngestionJob) -> Optional[str]:
        """
        Mark the file PROCESSING and return its original filename, or None if
        this delivery should be dropped (file missing or already terminal).
        """
        tag = f"[INGEST {job.file_id}]"
        with self.session_factory() as db:
            record = db.get(File, job.file_id)
            if record is None:
                logger.error(f"{tag} File not found in DB, dropping job")
                return None
            if record.chat_id != job.chat_id:
                raise InvalidJobError(
                    f"Job chatId {job.chat_id} does not own file {job.file_id}",
                    file_id=job.file_id,
                )
            source = record.filename
            if not set_file_status(db, job.file_id, FileStatus.PROCESSING):
                logger.warning(f"{tag} File already finished, skipping duplicate delivery")
                return None
        return source

    def _index(self, job: IngestionJob, chunks: List[ChunkDraft]) -> int:
        tag = f"[INGEST {job.file_id}]"
        # Embed everything before writing so a provider failure leaves nothing behind.
        vectors = self.embedder.embed_documents([c.content for c in chunks])
        if len(vectors) != len(chunks):
            raise IngestionError(
                f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks",
                file_id=job.file_id,
            )

        indexed = [IndexedChunk(draft=c, embedding=v) for c, v in zip(chunks, vectors)]
        try:
            count = self.vector_store.add(indexed)
        except Exception:
            logger.error(f"{tag} Index write failed, removing any partial chunks")
            self._purge_chunks(job)
            raise
        logger.info(f"{tag} Indexed {count} chunks")
        return count

    def _purge_chunks(self, job: IngestionJob) -> None:
        try:
            self.vector_store.delete(ChunkScope(job.chat_id, job.file_id))
        except Exception:
            logger.exception(f"[INGEST {job.file_id}] Could not purge partial chunks")

    def _finish(self, job: IngestionJob) -> bool:
        with self.session_factory() as db:
            return set_file_status(db, job.file_id, FileStatus.DONE)

    def _fail(self, job: IngestionJob, exc: Exception) -> None:
        try:
            with self.session_factory() as db:
                set_file_status(db, job.file_id, FileStatus.ERROR)
        except Exception:
            logger.exception(f"[INGEST {job.file_id}] Failed to update status to ERROR after: {exc}")
