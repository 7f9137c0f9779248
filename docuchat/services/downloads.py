# docuchat/services/downloads.py

import os
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import requests

from docuchat.errors import DownloadError
from docuchat.utils.logging import logger

CHUNK_BYTES = 64 * 1024


def download_to_path(url: str, dest: Path, timeout: float = 60.0) -> int:
    """
    Stream ``url`` into ``dest``. Network failures and non-2xx responses are
    raised as DownloadError so the queue can retry them.
    """
    written = 0
    try:
        with requests.get(url, stream=True, timeout=timeout) as resp:
            resp.raise_for_status()
            with open(dest, "wb") as fh:
                for block in resp.iter_content(chunk_size=CHUNK_BYTES):
                    if block:
                        fh.write(block)
                        written += len(block)
    except requests.RequestException as exc:
        logger.warning(f"Download failed for {url}: {exc}")
        raise DownloadError(f"Download failed: {exc}") from exc

    logger.info(f"Downloaded {written} bytes to {dest}")
    return written


@contextmanager
def temporary_pdf(file_id: str, temp_dir: Optional[str] = None) -> Iterator[Path]:
    """
    Yield a per-attempt temp path and remove it afterwards, whatever happens.
    The name carries the file id and a nanosecond timestamp so concurrent
    attempts never share a path.
    """
    base = Path(temp_dir or tempfile.gettempdir())
    base.mkdir(parents=True, exist_ok=True)
    path = base / f"docuchat_{file_id}_{time.time_ns()}.pdf"
    try:
        yield path
    finally:
        try:
            os.remove(path)
            logger.info(f"[INGEST {file_id}] Removed temp file {path}")
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning(f"[INGEST {file_id}] Could not remove temp file {path}")
