import pytest

from docuchat.errors import (
    DocumentParsingError,
    DownloadError,
    EmbeddingError,
    IndexingError,
    InvalidJobError,
)
from docuchat.jobs import IngestionJob
from docuchat.models import Chat, File, FileStatus
from docuchat.services import chats as chat_service
from docuchat.services.vector_store import ChunkScope, InMemoryVectorStore

from helpers import build_pdf, long_page

BASE = "http://testserver"


@pytest.fixture
def chat(db, user):
    record = Chat(user_id=user.id, name="Reports")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def upload(db, blob_store):
    """Store bytes as a blob and create the PROCESSING file row, like the upload route."""

    def _upload(chat, data, filename="report.pdf"):
        blob = blob_store.put(data, folder=f"docuchat/{chat.user_id}/{chat.id}", filename=filename)
        record = File(
            chat_id=chat.id,
            filename=filename,
            url=blob.url,
            blob_key=blob.key,
            status=FileStatus.PROCESSING,
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record, IngestionJob(file_id=record.id, chat_id=chat.id, url=blob.url)

    return _upload


def _status(db, file_id):
    db.expire_all()
    return db.get(File, file_id).status


def test_valid_pdf_is_indexed_and_marked_done(db, chat, upload, pipeline, vector_store, embedder, temp_dir):
    record, job = upload(chat, build_pdf(["Aardvark habitats are described here.", "Zebra migration is covered here."]))

    indexed = pipeline.process(job)

    assert indexed >= 2
    assert _status(db, record.id) == FileStatus.DONE
    hits = vector_store.search(ChunkScope(chat.id), embedder.embed_query("Aardvark habitats"), k=5)
    assert hits
    assert any("Aardvark" in h.content and h.page_number == 1 for h in hits)
    assert all(h.file_id == record.id and h.source == "report.pdf" for h in hits)
    assert list(temp_dir.iterdir()) == []


def test_long_document_chunks_are_all_tagged(db, chat, upload, pipeline, vector_store):
    record, job = upload(chat, build_pdf([long_page("alpha"), long_page("beta")]))

    indexed = pipeline.process(job)

    assert indexed > 2
    assert vector_store.count(ChunkScope(chat.id, record.id)) == indexed
    assert vector_store.count(ChunkScope(chat.id)) == indexed


def test_missing_blob_on_last_attempt_marks_error(db, chat, pipeline, vector_store, temp_dir):
    record = File(chat_id=chat.id, filename="gone.pdf", url=f"{BASE}/blobs/nope.pdf", status=FileStatus.PROCESSING)
    db.add(record)
    db.commit()
    job = IngestionJob(file_id=record.id, chat_id=chat.id, url=record.url)

    with pytest.raises(DownloadError):
        pipeline.process(job, retries_left=0)

    assert _status(db, record.id) == FileStatus.ERROR
    assert vector_store.count(ChunkScope(chat.id, record.id)) == 0
    assert list(temp_dir.iterdir()) == []


def test_download_failure_with_retries_left_stays_processing(db, chat, pipeline, vector_store):
    record = File(chat_id=chat.id, filename="gone.pdf", url=f"{BASE}/blobs/nope.pdf", status=FileStatus.PROCESSING)
    db.add(record)
    db.commit()
    job = IngestionJob(file_id=record.id, chat_id=chat.id, url=record.url)

    with pytest.raises(DownloadError):
        pipeline.process(job, retries_left=2)
    assert _status(db, record.id) == FileStatus.PROCESSING

    with pytest.raises(DownloadError):
        pipeline.process(job, retries_left=0)
    assert _status(db, record.id) == FileStatus.ERROR


def test_non_pdf_content_is_fatal_even_with_retries(db, chat, upload, pipeline, downloader, temp_dir):
    record, job = upload(chat, b"%!PS-Adobe this is not a pdf at all", filename="notes.pdf")

    with pytest.raises(DocumentParsingError):
        pipeline.process(job, retries_left=3)

    assert _status(db, record.id) == FileStatus.ERROR
    assert downloader.paths and not downloader.paths[0].exists()
    assert list(temp_dir.iterdir()) == []


def test_retry_after_fatal_error_is_dropped(db, chat, upload, pipeline, downloader):
    record, job = upload(chat, b"garbage bytes")
    with pytest.raises(DocumentParsingError):
        pipeline.process(job, retries_left=1)

    # the queue redelivers; the file must stay ERROR and nothing is downloaded again
    assert pipeline.process(job) == 0
    assert _status(db, record.id) == FileStatus.ERROR
    assert len(downloader.paths) == 1


def test_duplicate_delivery_after_done_adds_no_chunks(db, chat, upload, pipeline, vector_store):
    record, job = upload(chat, build_pdf(["Only one page of text about otters."]))
    first = pipeline.process(job)

    assert pipeline.process(job) == 0
    assert vector_store.count(ChunkScope(chat.id, record.id)) == first
    assert _status(db, record.id) == FileStatus.DONE


def test_temp_paths_are_unique_per_attempt(db, chat, pipeline, downloader):
    record = File(chat_id=chat.id, filename="gone.pdf", url=f"{BASE}/blobs/nope.pdf", status=FileStatus.PROCESSING)
    db.add(record)
    db.commit()
    job = IngestionJob(file_id=record.id, chat_id=chat.id, url=record.url)

    for _ in range(2):
        with pytest.raises(DownloadError):
            pipeline.process(job, retries_left=5)

    first, second = downloader.paths
    assert first != second
    assert record.id in first.name


def test_embedding_failure_is_retryable(db, chat, upload, pipeline, vector_store, monkeypatch):
    record, job = upload(chat, build_pdf(["Text about rate limits."]))

    def boom(texts):
        raise EmbeddingError("429 rate limited")

    monkeypatch.setattr(pipeline.embedder, "embed_documents", boom)

    with pytest.raises(EmbeddingError):
        pipeline.process(job, retries_left=1)
    assert _status(db, record.id) == FileStatus.PROCESSING

    monkeypatch.undo()
    assert pipeline.process(job, retries_left=0) >= 1
    assert _status(db, record.id) == FileStatus.DONE


def test_index_failure_leaves_no_partial_chunks(db, chat, upload, pipeline, vector_store, monkeypatch):
    record, job = upload(chat, build_pdf([long_page("partial")]))
    original_add = vector_store.add

    def half_then_fail(chunks):
        original_add(chunks[: len(chunks) // 2])
        raise IndexingError("connection reset during upsert")

    monkeypatch.setattr(vector_store, "add", half_then_fail)

    with pytest.raises(IndexingError):
        pipeline.process(job, retries_left=3)

    assert _status(db, record.id) == FileStatus.ERROR
    assert vector_store.count(ChunkScope(chat.id, record.id)) == 0


def test_job_for_wrong_chat_is_rejected(db, chat, upload, pipeline, vector_store):
    record, job = upload(chat, build_pdf(["Private text."]))
    forged = IngestionJob(file_id=job.file_id, chat_id="someone-elses-chat", url=job.url)

    with pytest.raises(InvalidJobError):
        pipeline.process(forged)

    assert _status(db, record.id) == FileStatus.ERROR
    assert vector_store.count(ChunkScope("someone-elses-chat")) == 0


def test_unknown_file_is_dropped(pipeline, downloader):
    job = IngestionJob(file_id="missing", chat_id="c", url=f"{BASE}/blobs/x.pdf")
    assert pipeline.process(job) == 0
    assert downloader.paths == []


def test_file_deleted_during_ingestion_leaves_no_chunks(db, chat, upload, pipeline, vector_store, session_factory, monkeypatch):
    record, job = upload(chat, build_pdf(["Soon to be deleted."]))
    original_add = vector_store.add

    def add_then_delete_row(chunks):
        count = original_add(chunks)
        with session_factory() as session:
            session.delete(session.get(File, record.id))
            session.commit()
        return count

    monkeypatch.setattr(vector_store, "add", add_then_delete_row)

    assert pipeline.process(job) == 0
    assert vector_store.count(ChunkScope(chat.id, record.id)) == 0


def test_file_deleted_mid_download_leaves_no_chunks(db, chat, upload, pipeline, vector_store, blob_store, session_factory):
    record, job = upload(chat, build_pdf(["Removed by the user while the worker ran."]))
    fetch = pipeline.downloader

    def fetch_then_user_deletes(url, dest, timeout=60.0):
        size = fetch(url, dest, timeout=timeout)
        with session_factory() as session:
            chat_service.delete_file(session, session.get(File, record.id), blob_store, vector_store)
        return size

    pipeline.downloader = fetch_then_user_deletes

    assert pipeline.process(job) == 0
    assert vector_store.count(ChunkScope(chat.id, record.id)) == 0
    assert not blob_store.exists(record.blob_key)
    assert db.query(File).filter_by(id=record.id).count() == 0


def test_delete_file_removes_row_before_chunks(db, chat, upload, blob_store, session_factory):
    record, _ = upload(chat, build_pdf(["Short."]))
    rows_seen = []

    class RowCheckingStore(InMemoryVectorStore):
        def delete(self, scope):
            with session_factory() as session:
                rows_seen.append(session.get(File, scope.file_id))
            return super().delete(scope)

    chat_service.delete_file(db, record, blob_store, RowCheckingStore())

    assert rows_seen == [None]


def test_same_content_in_two_chats_stays_isolated(db, user, upload, pipeline, vector_store, embedder):
    chat_a = Chat(user_id=user.id, name="A")
    chat_b = Chat(user_id=user.id, name="B")
    db.add_all([chat_a, chat_b])
    db.commit()
    data = build_pdf(["Identical contract terms about penguins."])
    _, job_a = upload(chat_a, data, filename="contract.pdf")
    _, job_b = upload(chat_b, data, filename="contract.pdf")

    pipeline.process(job_a)
    pipeline.process(job_b)

    query = embedder.embed_query("penguins contract")
    hits_a = vector_store.search(ChunkScope(chat_a.id), query, k=10)
    hits_b = vector_store.search(ChunkScope(chat_b.id), query, k=10)
    assert hits_a and hits_b
    assert {h.chat_id for h in hits_a} == {chat_a.id}
    assert {h.file_id for h in hits_a} == {job_a.file_id}
    assert {h.chat_id for h in hits_b} == {chat_b.id}
