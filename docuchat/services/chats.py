# docuchat/services/chats.py

from typing import List, Optional

from fastapi import HTTPException
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from docuchat.models import Chat, File, Message
from docuchat.services.vector_store import ChunkScope
from docuchat.utils.logging import logger

DEFAULT_CHAT_NAME = "New Chat"


def create_chat(db: Session, user_id: int, name: Optional[str] = None) -> Chat:
    chat = Chat(user_id=user_id, name=(name or "").strip() or DEFAULT_CHAT_NAME)
    db.add(chat)
    db.commit()
    db.refresh(chat)
    logger.info(f"Chat created: chat_id={chat.id}, user_id={user_id}")
    return chat


def list_chats(db: Session, user_id: int) -> List[Chat]:
    return list(
        db.scalars(
            select(Chat).where(Chat.user_id == user_id).order_by(Chat.created_at.desc())
        )
    )


def get_chat_for_user(db: Session, chat_id: str, user_id: int) -> Chat:
    chat = db.scalars(
        select(Chat).where(Chat.id == chat_id, Chat.user_id == user_id)
    ).first()
    if chat is None:
        logger.warning(f"Chat {chat_id} not found for user_id={user_id}")
        raise HTTPException(status_code=404, detail="Chat not found or access denied")
    return chat


def rename_chat(db: Session, chat: Chat, name: str) -> Chat:
    chat.name = name
    db.commit()
    db.refresh(chat)
    logger.info(f"Chat {chat.id} renamed")
    return chat


def list_files(db: Session, chat_id: str) -> List[File]:
    return list(
        db.scalars(
            select(File).where(File.chat_id == chat_id).order_by(File.created_at.desc())
        )
    )


def get_file_for_user(db: Session, file_id: str, user_id: int) -> File:
    record = db.scalars(
        select(File)
        .join(Chat, Chat.id == File.chat_id)
        .where(File.id == file_id, Chat.user_id == user_id)
    ).first()
    if record is None:
        raise HTTPException(status_code=404, detail="File not found")
    return record


def delete_file(db: Session, record: File, blob_store, vector_store) -> None:
    """
    Drop the row first, then its vector chunks and blob. A worker still
    ingesting this file then fails to mark it DONE and purges what it wrote.
    """
    file_id, chat_id, blob_key = record.id, record.chat_id, record.blob_key
    db.delete(record)
    db.commit()

    removed = vector_store.delete(ChunkScope(chat_id, file_id))
    if blob_key:
        blob_store.delete(blob_key)
    logger.info(f"File {file_id} deleted with {removed} vector chunks")


def delete_chat(db: Session, chat: Chat, blob_store, vector_store) -> None:
    """
    Cascade: messages, files and the chat row, then every vector chunk
    tagged with the chat and the blobs of its files.
    """
    chat_id = chat.id
    blob_keys = [record.blob_key for record in list_files(db, chat_id) if record.blob_key]

    db.execute(delete(Message).where(Message.chat_id == chat_id))
    db.execute(delete(File).where(File.chat_id == chat_id))
    db.execute(delete(Chat).where(Chat.id == chat_id))
    db.commit()
    db.expire_all()

    removed = vector_store.delete(ChunkScope(chat_id))
    for key in blob_keys:
        blob_store.delete(key)
    logger.info(f"Chat {chat_id} deleted with {removed} vector chunks")


def add_message(
    db: Session,
    chat_id: str,
    role: str,
    content: str,
    sources: Optional[list] = None,
) -> Message:
    message = Message(chat_id=chat_id, role=role, content=content, sources=sources)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


def list_messages(db: Session, chat_id: str) -> List[Message]:
    return list(
        db.scalars(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
    )


def recent_messages(db: Session, chat_id: str, limit: int) -> List[Message]:
    """Last ``limit`` messages of a chat, oldest first."""
    rows = list(
        db.scalars(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
    )
    rows.reverse()
    return rows


def latest_message(db: Session, chat_id: str) -> Optional[Message]:
    return db.scalars(
        select(Message)
        .where(Message.chat_id == chat_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(1)
    ).first()
