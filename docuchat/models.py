import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from pgvector.sqlalchemy import Vector

from .config import settings
from .db import Base


def _uuid() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class FileStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DONE = "DONE"
    ERROR = "ERROR"


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    username = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)


class Chat(Base):
    __tablename__ = "chats"
    id = Column(String(32), primary_key=True, default=_uuid)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="New Chat")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    files = relationship(
        "File", back_populates="chat", order_by=lambda: File.created_at.desc()
    )
    messages = relationship(
        "Message",
        back_populates="chat",
        order_by=lambda: [Message.created_at, Message.id],
    )


class File(Base):
    __tablename__ = "files"
    id = Column(String(32), primary_key=True, default=_uuid)
    chat_id = Column(String(32), ForeignKey("chats.id"), nullable=False, index=True)
    filename = Column(String(512), nullable=False)
    url = Column(Text, nullable=False)
    blob_key = Column(String(1024), nullable=True)
    status = Column(
        Enum(FileStatus, name="file_status", native_enum=False, length=20),
        nullable=False,
        default=FileStatus.PENDING,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    chat = relationship("Chat", back_populates="files")


class Message(Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(String(32), ForeignKey("chats.id"), nullable=False, index=True)
    role = Column(String(16), nullable=False)  # "user" | "assistant"
    content = Column(Text, nullable=False)
    sources = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    chat = relationship("Chat", back_populates="messages")


class DocumentChunk(Base):
    """
    One embedded chunk in the shared vector collection. Rows are only ever
    inserted by the ingestion worker and removed with their file or chat.
    """
    __tablename__ = "document_chunks"
    id = Column(Integer, primary_key=True)
    chat_id = Column(String(32), nullable=False)
    file_id = Column(String(32), nullable=False)
    source = Column(String(512), nullable=False)
    page_number = Column(Integer, nullable=False)
    chunk_index = Column(Integer, nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(Vector(settings.embedding_dim))
    __table_args__ = (
        Index("ix_chunks_chat_id", "chat_id"),
        Index("ix_chunks_file_id", "file_id"),
    )


# Tables that do not depend on the pgvector extension.
RELATIONAL_TABLES = [
    User.__table__,
    Chat.__table__,
    File.__table__,
    Message.__table__,
]
