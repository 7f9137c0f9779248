#docuchat/services/rag.py

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from openai import OpenAI

from .vector_store import ChunkScope, SearchHit
from docuchat.config import settings
from docuchat.utils.logging import logger

FALLBACK_ANSWER = "The assistant could not generate a response. Please try again."

SYSTEM_PROMPT = (
    "You are DocuChat, an expert document analysis assistant. "
    "Answer primarily from the document context provided. "
    "Reference specific pages when citing information. "
    "If the context lacks the information, say: \"Based on the available document "
    "content, I don't have sufficient information about...\" and explain what is missing. "
    "Keep a natural conversational tone that follows the chat history."
)


@dataclass
class Answer:
    text: str
    sources: List[SearchHit] = field(default_factory=list)


class OpenAIChatModel:
    def __init__(self, api_key: str, model: str, temperature: float = 0.3, max_tokens: int = 2048):
        self.client = OpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def complete(self, messages: List[Dict[str, str]]) -> str:
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not resp.choices:
            return ""
        return resp.choices[0].message.content or ""


_chat_model = None


def get_chat_model() -> OpenAIChatModel:
    global _chat_model
    if _chat_model is None:
        _chat_model = OpenAIChatModel(
            api_key=settings.openai_api_key,
            model=settings.chat_model,
            temperature=settings.chat_temperature,
            max_tokens=settings.chat_max_tokens,
        )
    return _chat_model


def build_context(hits: Sequence[SearchHit], max_chars: int = 12_000) -> str:
    """
    Render retrieved chunks as a context block, one section per chunk with
    its source file and page number.
    """
    parts = []
    total = 0

    for hit in hits:
        if not hit.content:
            continue
        if total + len(hit.content) > max_chars and parts:
            break
        parts.append(
            f"Source: {hit.source or 'Document'}\n"
            f"Page: {hit.page_number}\n"
            f"Content: {hit.content}"
        )
        total += len(hit.content)

    return "\n---\n".join(parts)


def build_messages(question: str, hits: Sequence[SearchHit], history) -> List[Dict[str, str]]:
    context = build_context(hits)
    system = (
        f"{SYSTEM_PROMPT}\n\nDOCUMENT CONTEXT:\n{context}"
        if context
        else f"{SYSTEM_PROMPT}\n\nDOCUMENT CONTEXT:\n(no matching document content)"
    )
    messages = [{"role": "system", "content": system}]
    for msg in history:
        if msg.role in ("user", "assistant"):
            messages.append({"role": msg.role, "content": msg.content})
    messages.append({"role": "user", "content": question})
    return messages


def answer_question(
    store,
    embedder,
    chat_model,
    chat_id: str,
    question: str,
    history=(),
    k: int = 5,
) -> Answer:
    """
    Retrieve the chat's top-k chunks for ``question`` and ask the chat model.
    Retrieval is always scoped to ``chat_id``; the collection is shared by
    every chat.
    """
    logger.info(
        f"RAG answer_question called: chat_id={chat_id}, "
        f"question='{question[:100]}{'...' if len(question) > 100 else ''}'"
    )

    q_vec = embedder.embed_query(question)
    hits = store.search(ChunkScope(chat_id=chat_id), q_vec, k)
    logger.info(f"Retrieved {len(hits)} chunks for chat_id={chat_id}")

    messages = build_messages(question, hits, history)

    try:
        text = chat_model.complete(messages).strip()
    except Exception as exc:
        logger.exception(f"Chat completion failed: {exc}")
        raise

    if not text:
        logger.warning("Chat model returned an empty answer; using fallback text")
        text = FALLBACK_ANSWER

    logger.info(f"RAG answer generated: answer_len={len(text)}, sources={len(hits)}")
    return Answer(text=text, sources=list(hits))
