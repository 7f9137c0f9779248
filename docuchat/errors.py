from typing import Optional


class IngestionError(Exception):
    """Base class for failures while turning an uploaded PDF into indexed chunks."""

    retryable = False

    def __init__(self, message: str, file_id: Optional[str] = None):
        super().__init__(message)
        self.file_id = file_id


class InvalidJobError(IngestionError):
    """The job payload is malformed or missing a required field."""


class TransientIngestionError(IngestionError):
    """Infrastructure hiccup; the queue's retry policy may succeed later."""

    retryable = True


class DownloadError(TransientIngestionError):
    pass


class EmbeddingError(TransientIngestionError):
    pass


class DocumentParsingError(IngestionError):
    """Corrupt, non-PDF or text-less document. Retrying will not help."""


class IndexingError(IngestionError):
    """Chunks could not be written to the vector store as a whole."""


class BlobStoreError(Exception):
    pass
