# docuchat/services/embeddings.py

from typing import List

from openai import OpenAI, OpenAIError

from docuchat.config import settings
from docuchat.errors import EmbeddingError
from docuchat.utils.logging import logger

EMBED_BATCH_SIZE = 64


class OpenAIEmbedder:
    def __init__(self, api_key: str, model: str = "text-embedding-3-small"):
        self.client = OpenAI(api_key=api_key)
        self.model = model
        logger.debug(f"OpenAIEmbedder created with model={model}")

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        logger.info(f"Creating embeddings for {len(texts)} chunk(s)")
        vectors: List[List[float]] = []
        try:
            for start in range(0, len(texts), EMBED_BATCH_SIZE):
                batch = texts[start:start + EMBED_BATCH_SIZE]
                resp = self.client.embeddings.create(model=self.model, input=batch)
                vectors.extend(item.embedding for item in resp.data)
        except OpenAIError as exc:
            logger.exception(f"Embedding creation failed: {exc}")
            raise EmbeddingError(f"Embedding provider failed: {exc}") from exc
        logger.debug("Embeddings created successfully")
        return vectors

    def embed_query(self, text: str) -> List[float]:
        return self.embed_documents([text])[0]


class LocalEmbedder:
    """
    SentenceTransformer embeddings computed in-process. The model is loaded on
    first use so importing this module stays cheap for the API process.
    """

    def __init__(self, model_name: str = "BAAI/bge-base-en-v1.5"):
        self.model_name = model_name
        self._model = None

    def _load(self):
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading local embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
            logger.info("Local embedding model loaded successfully")
        return self._model

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        logger.info(f"Creating local embeddings for {len(texts)} chunk(s)")
        try:
            vecs = self._load().encode(
                texts,
                convert_to_numpy=True,
                normalize_embeddings=False,
            )
        except Exception as exc:
            logger.exception(f"Local embedding creation failed: {exc}")
            raise EmbeddingError(f"Local embedding failed: {exc}") from exc
        return [vec.astype(float).tolist() for vec in vecs]

    def embed_query(self, text: str) -> List[float]:
        return self.embed_documents([text])[0]


_embedder = None


def get_embedder():
    global _embedder
    if _embedder is None:
        if settings.embedding_backend == "local":
            _embedder = LocalEmbedder(settings.local_embedding_model)
        elif settings.embedding_backend == "openai":
            _embedder = OpenAIEmbedder(settings.openai_api_key, settings.embedding_model)
        else:
            raise ValueError(f"Unknown embedding_backend: {settings.embedding_backend}")
    return _embedder
