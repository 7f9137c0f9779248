import os
import tempfile

# Settings are read at import time; give the test run its own environment.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("OPENAI_API_KEY", "test-key")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DOCUCHAT_LOG_DIR", os.path.join(tempfile.gettempdir(), "docuchat-test-logs"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from docuchat import deps
from docuchat.auth import get_current_user
from docuchat.db import Base, get_db
from docuchat.ingestion import IngestionPipeline
from docuchat.main import app
from docuchat.models import RELATIONAL_TABLES, User
from docuchat.services.blob_store import LocalBlobStore
from docuchat.services.vector_store import InMemoryVectorStore

from helpers import BlobDownloader, FakeChatModel, HashEmbedder, RecordingQueue

BASE_URL = "http://testserver"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine, tables=RELATIONAL_TABLES)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    record = User(username="alice", password_hash="x")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def other_user(db):
    record = User(username="bob", password_hash="x")
    db.add(record)
    db.commit()
    db.refresh(record)
    return record


@pytest.fixture
def vector_store():
    return InMemoryVectorStore()


@pytest.fixture
def embedder():
    return HashEmbedder()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "blobs", BASE_URL)


@pytest.fixture
def downloader(blob_store):
    return BlobDownloader(blob_store)


@pytest.fixture
def job_queue():
    return RecordingQueue()


@pytest.fixture
def chat_model():
    return FakeChatModel()


@pytest.fixture
def temp_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture
def pipeline(session_factory, vector_store, embedder, downloader, temp_dir):
    return IngestionPipeline(
        session_factory=session_factory,
        vector_store=vector_store,
        embedder=embedder,
        downloader=downloader,
        chunk_size=1000,
        chunk_overlap=200,
        temp_dir=str(temp_dir),
    )


@pytest.fixture
def current_user():
    """Which user the API treats as authenticated; tests may swap it."""
    return {}


@pytest.fixture
def client(
    session_factory,
    user,
    current_user,
    blob_store,
    vector_store,
    embedder,
    chat_model,
    job_queue,
):
    current_user.setdefault("id", user.id)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def override_current_user():
        with session_factory() as session:
            return session.get(User, current_user["id"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[deps.get_blob_store] = lambda: blob_store
    app.dependency_overrides[deps.get_vector_store] = lambda: vector_store
    app.dependency_overrides[deps.get_embedder] = lambda: embedder
    app.dependency_overrides[deps.get_chat_model] = lambda: chat_model
    app.dependency_overrides[deps.get_job_queue] = lambda: job_queue

    yield TestClient(app)

    app.dependency_overrides.clear()
