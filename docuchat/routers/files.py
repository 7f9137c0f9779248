# files.py
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import get_current_user
from ..config import settings
from ..db import get_db
from ..deps import get_blob_store, get_job_queue, get_vector_store
from ..jobs import IngestionJob
from ..models import File as FileRecord, FileStatus
from ..services import chats as chat_service
from ..services.file_status import set_file_status
from docuchat.utils.logging import logger

router = APIRouter(prefix="/api")

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


def is_pdf_upload(upload: UploadFile) -> bool:
    if upload.content_type in PDF_CONTENT_TYPES:
        return True
    return (upload.filename or "").lower().endswith(".pdf")


@router.post("/chats/{chat_id}/files", response_model=schemas.UploadResponse)
async def upload_file(
    chat_id: str,
    pdf: UploadFile = File(...),
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    blob_store=Depends(get_blob_store),
    job_queue=Depends(get_job_queue),
):
    chat = chat_service.get_chat_for_user(db, chat_id, user.id)

    if not is_pdf_upload(pdf):
        logger.warning(f"Upload rejected: not a PDF filename={pdf.filename}, type={pdf.content_type}")
        raise HTTPException(status_code=400, detail="Only PDF files are allowed")

    contents = await pdf.read(settings.max_upload_bytes + 1)
    if len(contents) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")
    if not contents:
        raise HTTPException(status_code=400, detail="No file uploaded")

    logger.info(
        f"Upload called by user_id={user.id} for chat_id={chat.id}, "
        f"filename={pdf.filename}, bytes={len(contents)}"
    )

    # 1) Store the bytes
    filename = pdf.filename or "document.pdf"
    blob = blob_store.put(contents, folder=f"docuchat/{user.id}/{chat.id}", filename=filename)

    # 2) Create the file record; it is PROCESSING until the worker finishes
    record = FileRecord(
        chat_id=chat.id,
        filename=filename,
        url=blob.url,
        blob_key=blob.key,
        status=FileStatus.PROCESSING,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    # 3) Hand off to the worker
    job = IngestionJob(file_id=record.id, chat_id=chat.id, url=blob.url)
    try:
        job_queue.enqueue_ingestion(job)
    except Exception as exc:
        logger.exception(f"Could not enqueue ingestion for file_id={record.id}: {exc}")
        set_file_status(db, record.id, FileStatus.ERROR)
        raise HTTPException(status_code=503, detail="Could not queue file for processing")

    return {"message": "uploaded", "file": record}


@router.get("/chats/{chat_id}/files", response_model=List[schemas.FileOut])
def list_files(chat_id: str, db: Session = Depends(get_db), user=Depends(get_current_user)):
    chat = chat_service.get_chat_for_user(db, chat_id, user.id)
    files = chat_service.list_files(db, chat.id)
    logger.debug(f"Returning {len(files)} files for chat_id={chat.id}")
    return files


@router.delete("/files/{file_id}", response_model=schemas.DeleteResponse)
def delete_file(
    file_id: str,
    db: Session = Depends(get_db),
    user=Depends(get_current_user),
    blob_store=Depends(get_blob_store),
    vector_store=Depends(get_vector_store),
):
    record = chat_service.get_file_for_user(db, file_id, user.id)
    chat_service.delete_file(db, record, blob_store, vector_store)
    return {"success": True, "message": "File deleted successfully"}


@router.get("/files/{file_id}/download")
def download_file(file_id: str, db: Session = Depends(get_db), user=Depends(get_current_user)):
    record = chat_service.get_file_for_user(db, file_id, user.id)
    return RedirectResponse(record.url)
