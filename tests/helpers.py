import math
import re
import zlib
from pathlib import Path
from typing import Dict, List, Optional

from docuchat.errors import DownloadError

WORD = re.compile(r"[a-z0-9]+")


class HashEmbedder:
    """Deterministic bag-of-words vectors; same text, same vector."""

    def __init__(self, dim: int = 64):
        self.dim = dim
        self.calls = 0

    def _vector(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        for word in WORD.findall(text.lower()):
            vec[zlib.crc32(word.encode()) % self.dim] += 1.0
        norm = math.sqrt(sum(v * v for v in vec)) or 1.0
        return [v / norm for v in vec]

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        return [self._vector(t) for t in texts]

    def embed_query(self, text: str) -> List[float]:
        return self._vector(text)


class BlobDownloader:
    """Serves blob URLs straight from a LocalBlobStore, 404 for unknown keys."""

    def __init__(self, blob_store, fail_with: Optional[Exception] = None):
        self.blob_store = blob_store
        self.fail_with = fail_with
        self.paths: List[Path] = []

    def __call__(self, url: str, dest: Path, timeout: float = 60.0) -> int:
        self.paths.append(Path(dest))
        if self.fail_with is not None:
            raise self.fail_with
        prefix = f"{self.blob_store.public_base_url}/blobs/"
        key = url[len(prefix):] if url.startswith(prefix) else None
        if key is None or not self.blob_store.exists(key):
            raise DownloadError(f"404 Client Error: Not Found for url: {url}")
        data = self.blob_store.path_for(key).read_bytes()
        Path(dest).write_bytes(data)
        return len(data)


class RecordingQueue:
    def __init__(self, fail: bool = False):
        self.jobs = []
        self.fail = fail

    def enqueue_ingestion(self, job) -> str:
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.jobs.append(job)
        return f"job-{len(self.jobs)}"


class FakeChatModel:
    def __init__(self, reply: str = "Here is what the document says."):
        self.reply = reply
        self.calls: List[List[Dict[str, str]]] = []

    def complete(self, messages):
        self.calls.append(messages)
        return self.reply


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def build_pdf(pages: List[str]) -> bytes:
    """Minimal text PDF, one Helvetica text block per page, lines split on newlines."""
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for pid, text in zip(page_ids, pages):
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                "/Resources << /Font << /F1 3 0 R >> >> "
                f"/Contents {pid + 1} 0 R >>"
            ).encode()
        )
        ops = ["BT", "/F1 10 Tf", "12 TL", "40 760 Td"]
        for line in text.split("\n"):
            ops.append(f"({_escape(line)}) Tj T*")
        ops.append("ET")
        stream = "\n".join(ops).encode("latin-1")
        objects.append(
            b"<< /Length " + str(len(stream)).encode() + b" >>\nstream\n" + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref}\n%%EOF\n"
    ).encode()
    return bytes(out)


def long_page(topic: str, lines: int = 40) -> str:
    """Page text long enough to need several chunks."""
    return "\n".join(
        f"{topic} line {i} describes the {topic} subject in some detail for testing."
        for i in range(lines)
    )
