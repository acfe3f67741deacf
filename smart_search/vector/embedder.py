"""Local query embedding using sentence-transformers."""

import logging

from sentence_transformers import SentenceTransformer

from ..retrieval.config import DEFAULT_EMBED_MODEL

log = logging.getLogger(__name__)

# Options:
# - TaylorAI/bge-micro-v2: what Smart Connections indexes with by default, 384 dims
# - BAAI/bge-small-en-v1.5: better quality, 384 dims
# - sentence-transformers/paraphrase-multilingual-MiniLM-L12-v2: multilingual, 384 dims
MAX_INPUT_CHARS = 8000


class SentenceTransformerBackend:
    """Generate embeddings with a local sentence-transformers model.

    Loading the model is slow (downloads on first use), so construct this
    off the event loop.
    """

    def __init__(self, model: str = DEFAULT_EMBED_MODEL):
        log.info(f"Loading embedding model: {model}")
        self.model_name = model
        self.model = SentenceTransformer(model)
        self.dimensions = self.model.get_sentence_embedding_dimension()
        log.info(f"Model loaded. Dimensions: {self.dimensions}")

    def embed(self, text: str) -> list[float]:
        """Generate a normalized embedding for a single text."""
        if len(text) > MAX_INPUT_CHARS:
            text = text[:MAX_INPUT_CHARS]

        embedding = self.model.encode(text, normalize_embeddings=True)
        return embedding.tolist()
