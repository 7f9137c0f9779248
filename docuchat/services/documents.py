# docuchat/services/documents.py

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from langchain_text_splitters import RecursiveCharacterTextSplitter
from pypdf import PdfReader

from docuchat.errors import DocumentParsingError
from docuchat.jobs import IngestionJob
from docuchat.utils.logging import logger


@dataclass(frozen=True)
class PageText:
    page_number: int  # 1-based
    text: str


@dataclass(frozen=True)
class ChunkDraft:
    """A chunk of page text, tagged with its owner, before it is embedded."""

    chat_id: str
    file_id: str
    source: str
    page_number: int
    chunk_index: int
    content: str

    def metadata(self) -> Dict[str, Any]:
        return {
            "chatId": self.chat_id,
            "fileId": self.file_id,
            "source": self.source,
            "loc": {"pageNumber": self.page_number},
        }


def load_pdf_pages(path: Union[str, Path]) -> List[PageText]:
    """
    Read a PDF from disk and return the text of every page that has any.
    Raises DocumentParsingError for unreadable input or a text-less document.
    """
    logger.info(f"Extracting text from PDF path={path}")
    try:
        reader = PdfReader(str(path))
        pages = [
            PageText(page_number=number, text=(page.extract_text() or "").strip())
            for number, page in enumerate(reader.pages, start=1)
        ]
    except Exception as exc:
        logger.exception(f"Failed to read PDF {path}: {exc}")
        raise DocumentParsingError(f"Unreadable PDF: {exc}") from exc

    pages = [p for p in pages if p.text]
    if not pages:
        raise DocumentParsingError("PDF contains no extractable text")

    logger.info(
        f"Extracted {sum(len(p.text) for p in pages)} characters "
        f"from {len(pages)} page(s) of {path}"
    )
    return pages


def make_splitter(chunk_size: int, chunk_overlap: int) -> RecursiveCharacterTextSplitter:
    if chunk_overlap >= chunk_size:
        raise ValueError("chunk_overlap must be smaller than chunk_size")
    return RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
    )


def build_chunks(
    pages: List[PageText],
    job: IngestionJob,
    source: str,
    chunk_size: int = 1000,
    chunk_overlap: int = 200,
    splitter: Optional[RecursiveCharacterTextSplitter] = None,
) -> List[ChunkDraft]:
    """
    Split each page into overlapping chunks and tag every chunk with the
    job's chat and file ids. Output depends only on the input text and the
    splitter settings.
    """
    splitter = splitter or make_splitter(chunk_size, chunk_overlap)

    chunks: List[ChunkDraft] = []
    for page in pages:
        for piece in splitter.split_text(page.text):
            if not piece.strip():
                continue
            chunks.append(
                ChunkDraft(
                    chat_id=job.chat_id,
                    file_id=job.file_id,
                    source=source,
                    page_number=page.page_number,
                    chunk_index=len(chunks),
                    content=piece,
                )
            )

    if not chunks:
        raise DocumentParsingError("Document produced no chunks", file_id=job.file_id)

    logger.info(f"Split '{source}' into {len(chunks)} chunks for file {job.file_id}")
    return chunks
