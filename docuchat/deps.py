# docuchat/deps.py
# FastAPI dependencies for the external collaborators; tests override them.

from functools import lru_cache

from .config import settings
from .db import SessionLocal
from .queue import get_job_queue as _get_job_queue
from .services.blob_store import LocalBlobStore
from .services.embeddings import get_embedder as _get_embedder
from .services.rag import get_chat_model as _get_chat_model
from .services.vector_store import PgVectorStore


@lru_cache
def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.blob_dir, settings.public_base_url)


@lru_cache
def get_vector_store() -> PgVectorStore:
    return PgVectorStore(SessionLocal)


def get_embedder():
    return _get_embedder()


def get_chat_model():
    return _get_chat_model()


def get_job_queue():
    return _get_job_queue()
