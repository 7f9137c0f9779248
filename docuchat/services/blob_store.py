# docuchat/services/blob_store.py

import re
import time
from dataclasses import dataclass
from pathlib import Path

from docuchat.errors import BlobStoreError
from docuchat.utils.logging import logger

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredBlob:
    url: str
    key: str


def safe_name(filename: str) -> str:
    name = _UNSAFE.sub("_", Path(filename or "file").name).strip("._")
    return name or "file"


class LocalBlobStore:
    """
    Stores uploaded bytes on local disk and publishes them under
    ``{public_base_url}/blobs/{key}``. Keys are opaque to callers.
    """

    def __init__(self, root, public_base_url: str):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        logger.debug(f"LocalBlobStore rooted at {self.root}")

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/blobs/{key}"

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path != self.root and self.root not in path.parents:
            raise BlobStoreError(f"Blob key escapes storage root: {key}")
        return path

    def put(self, data: bytes, folder: str, filename: str) -> StoredBlob:
        key = f"{folder.strip('/')}/{time.time_ns()}-{safe_name(filename)}"
        path = self.path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.exception(f"Failed to store blob {key}: {exc}")
            raise BlobStoreError(f"Could not store blob: {exc}") from exc

        logger.info(f"Stored blob key={key}, bytes={len(data)}")
        return StoredBlob(url=self.url_for(key), key=key)

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.exception(f"Failed to delete blob {key}: {exc}")
            raise BlobStoreError(f"Could not delete blob: {exc}") from exc
        logger.info(f"Deleted blob key={key}")

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()
