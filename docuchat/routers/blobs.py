from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from ..deps import get_blob_store
from ..errors import BlobStoreError

router = APIRouter()


@router.get("/blobs/{key:path}")
def get_blob(key: str, blob_store=Depends(get_blob_store)):
    try:
        path = blob_store.path_for(key)
    except BlobStoreError:
        raise HTTPException(status_code=404, detail="Not found")
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(path, media_type="application/pdf")
