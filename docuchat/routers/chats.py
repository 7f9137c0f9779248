from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user
from ..db import get_db
from ..deps import get_blob_store, get_vector_store
from ..services import chats as chat_service
from docuchat.utils.logging import logger

router = APIRouter(prefix="/api")


@router.post("/chats", response_model=schemas.ChatOut)
def create_chat(
    payload: schemas.ChatCreate,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    return chat_service.create_chat(db, user.id, payload.name)


@router.get("/chats", response_model=List[schemas.ChatSummary])
def list_chats(db: Session = Depends(get_db), user=Depends(get_current_user)):
    logger.info(f"/chats called for user_id={user.id}")
    summaries = []
    for chat in chat_service.list_chats(db, user.id):
        summary = schemas.ChatSummary.model_validate(chat, from_attributes=True)
        latest = chat_service.latest_message(db, chat.id)
        if latest is not None:
            summary.latest_message = schemas.MessageOut.model_validate(latest)
        summaries.append(summary)
    logger.info(f"/chats returning {len(summaries)} chats for user_id={user.id}")
    return summaries


@router.get("/chats/{chat_id}", response_model=schemas.ChatDetail)
def get_chat(chat_id: str, db: Session = Depends(get_db), user=Depends(get_current_user)):
    return chat_service.get_chat_for_user(db, chat_id, user.id)


@router.patch("/chats/{chat_id}", response_model=schemas.ChatOut)
def rename_chat(
    chat_id: str,
    payload: schemas.ChatRename,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
):
    chat = chat_service.get_chat_for_user(db, chat_id, user.id)
    return chat_service.rename_chat(db, chat, payload.name)


@router.delete("/chats/{chat_id}", response_model=schemas.DeleteResponse)
def delete_chat(
    chat_id: str,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    blob_store=Depends(get_blob_store),
    vector_store=Depends(get_vector_store),
):
    chat = chat_service.get_chat_for_user(db, chat_id, user.id)
    chat_service.delete_chat(db, chat, blob_store, vector_store)
    return {"success": True, "message": "Chat deleted successfully"}
