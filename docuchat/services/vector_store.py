# docuchat/services/vector_store.py

import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from docuchat.errors import IndexingError
from docuchat.models import DocumentChunk
from docuchat.services.documents import ChunkDraft
from docuchat.utils.logging import logger


@dataclass(frozen=True)
class ChunkScope:
    """
    Filter applied to every read and delete against the shared collection.

    The collection holds every user's chunks, so a scope cannot be built
    without a chat id. ``file_id`` narrows it further to one document.
    """

    chat_id: str
    file_id: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.chat_id, str) or not self.chat_id:
            raise ValueError("ChunkScope requires a non-empty chat_id")
        if self.file_id is not None and not self.file_id:
            raise ValueError("ChunkScope file_id must be non-empty when given")

    def matches(self, chat_id: str, file_id: str) -> bool:
        if chat_id != self.chat_id:
            return False
        return self.file_id is None or file_id == self.file_id


@dataclass(frozen=True)
class IndexedChunk:
    draft: ChunkDraft
    embedding: List[float]


@dataclass(frozen=True)
class SearchHit:
    content: str
    chat_id: str
    file_id: str
    source: str
    page_number: int
    chunk_index: int
    score: float

    def metadata(self) -> Dict[str, Any]:
        return {
            "chatId": self.chat_id,
            "fileId": self.file_id,
            "source": self.source,
            "loc": {"pageNumber": self.page_number},
        }

    def as_source(self) -> Dict[str, Any]:
        """Shape persisted on assistant messages."""
        return {
            "content": self.content,
            "fileId": self.file_id,
            "source": self.source,
            "pageNumber": self.page_number,
        }


class PgVectorStore:
    """Chunks stored in Postgres with pgvector, searched by cosine distance."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory
        logger.debug("PgVectorStore instance created")

    def add(self, chunks: Sequence[IndexedChunk]) -> int:
        if not chunks:
            return 0
        file_ids = {c.draft.file_id for c in chunks}
        logger.info(f"Inserting {len(chunks)} chunk(s) into document_chunks for file(s) {sorted(file_ids)}")

        session = self.session_factory()
        try:
            session.add_all(
                DocumentChunk(
                    chat_id=c.draft.chat_id,
                    file_id=c.draft.file_id,
                    source=c.draft.source,
                    page_number=c.draft.page_number,
                    chunk_index=c.draft.chunk_index,
                    content=c.draft.content,
                    embedding=c.embedding,
                )
                for c in chunks
            )
            session.commit()
        except Exception as exc:
            session.rollback()
            logger.exception(f"Error inserting chunks, transaction rolled back: {exc}")
            raise IndexingError(f"Vector upsert failed: {exc}") from exc
        finally:
            session.close()
        return len(chunks)

    def _where(self, scope: ChunkScope):
        clauses = [DocumentChunk.chat_id == scope.chat_id]
        if scope.file_id is not None:
            clauses.append(DocumentChunk.file_id == scope.file_id)
        return clauses

    def search(self, scope: ChunkScope, vector: List[float], k: int) -> List[SearchHit]:
        logger.info(f"Querying top_k={k} chunks: chat_id={scope.chat_id}, file_id={scope.file_id}")
        distance = DocumentChunk.embedding.cosine_distance(vector)
        stmt = (
            select(DocumentChunk, distance.label("distance"))
            .where(*self._where(scope))
            .order_by(distance.asc())
            .limit(k)
        )
        with self.session_factory() as session:
            rows = session.execute(stmt).all()

        logger.info(f"top_k (semantic) returned {len(rows)} rows")
        return [
            SearchHit(
                content=row.DocumentChunk.content,
                chat_id=row.DocumentChunk.chat_id,
                file_id=row.DocumentChunk.file_id,
                source=row.DocumentChunk.source,
                page_number=row.DocumentChunk.page_number,
                chunk_index=row.DocumentChunk.chunk_index,
                score=1.0 - float(row.distance),
            )
            for row in rows
        ]

    def delete(self, scope: ChunkScope) -> int:
        with self.session_factory() as session:
            result = session.execute(delete(DocumentChunk).where(*self._where(scope)))
            session.commit()
        logger.info(
            f"Deleted {result.rowcount} chunk(s): chat_id={scope.chat_id}, file_id={scope.file_id}"
        )
        return result.rowcount

    def count(self, scope: ChunkScope) -> int:
        with self.session_factory() as session:
            return session.execute(
                select(func.count()).select_from(DocumentChunk).where(*self._where(scope))
            ).scalar_one()


def _cosine(a: List[float], b: List[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class InMemoryVectorStore:
    """
    Process-local store with the same scoping rules as PgVectorStore.
    Not shared between the API and worker processes; meant for tests and
    single-process development.
    """

    def __init__(self):
        self._chunks: List[IndexedChunk] = []
        self._lock = threading.Lock()

    def add(self, chunks: Sequence[IndexedChunk]) -> int:
        with self._lock:
            self._chunks.extend(chunks)
        return len(chunks)

    def search(self, scope: ChunkScope, vector: List[float], k: int) -> List[SearchHit]:
        with self._lock:
            candidates = [
                c for c in self._chunks
                if scope.matches(c.draft.chat_id, c.draft.file_id)
            ]
        scored = sorted(
            ((c, _cosine(vector, c.embedding)) for c in candidates),
            key=lambda pair: (-pair[1], pair[0].draft.file_id, pair[0].draft.chunk_index),
        )
        return [
            SearchHit(
                content=c.draft.content,
                chat_id=c.draft.chat_id,
                file_id=c.draft.file_id,
                source=c.draft.source,
                page_number=c.draft.page_number,
                chunk_index=c.draft.chunk_index,
                score=score,
            )
            for c, score in scored[:k]
        ]

    def delete(self, scope: ChunkScope) -> int:
        with self._lock:
            keep = [c for c in self._chunks if not scope.matches(c.draft.chat_id, c.draft.file_id)]
            removed = len(self._chunks) - len(keep)
            self._chunks = keep
        return removed

    def count(self, scope: ChunkScope) -> int:
        with self._lock:
            return sum(1 for c in self._chunks if scope.matches(c.draft.chat_id, c.draft.file_id))
