from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user
from ..config import settings
from ..db import get_db
from ..deps import get_chat_model, get_embedder, get_vector_store
from ..services import chats as chat_service
from ..services.rag import answer_question
from docuchat.utils.logging import logger

router = APIRouter(prefix="/api")


@router.get("/chats/{chat_id}/messages", response_model=List[schemas.MessageOut])
def list_messages(chat_id: str, db: Session = Depends(get_db), user=Depends(get_current_user)):
    chat = chat_service.get_chat_for_user(db, chat_id, user.id)
    return chat_service.list_messages(db, chat.id)


@router.post("/chats/{chat_id}/messages", response_model=schemas.AskResponse)
def ask(
    chat_id: str,
    payload: schemas.AskRequest,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    vector_store=Depends(get_vector_store),
    embedder=Depends(get_embedder),
    chat_model=Depends(get_chat_model),
):
    chat = chat_service.get_chat_for_user(db, chat_id, user.id)
    question = payload.message.strip()
    if not question:
        raise HTTPException(status_code=400, detail="message is required")

    logger.info(
        f"Message for chat_id={chat.id} by user_id={user.id}: "
        f"'{question[:100]}{'...' if len(question) > 100 else ''}'"
    )

    user_message = chat_service.add_message(db, chat.id, "user", question)
    history = [
        m for m in chat_service.recent_messages(db, chat.id, settings.history_limit)
        if m.id != user_message.id
    ][-settings.prompt_history:]

    try:
        answer = answer_question(
            vector_store,
            embedder,
            chat_model,
            chat.id,
            question,
            history=history,
            k=settings.top_k,
        )
    except Exception as exc:
        logger.exception(f"Error processing chat message for chat_id={chat.id}: {exc}")
        raise HTTPException(status_code=500, detail="Failed to process chat message")

    sources = [hit.as_source() for hit in answer.sources]
    chat_service.add_message(db, chat.id, "assistant", answer.text, sources=sources)

    logger.info(f"Answer ready for chat_id={chat.id}: answer_len={len(answer.text)}, sources={len(sources)}")
    return {"message": answer.text, "sources": sources}
