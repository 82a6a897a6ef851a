"""In-process embedding using sentence-transformers."""

import threading

from ..errors import ServiceUnavailable
from .base import EmbedderBase


class SentenceTransformerEmbedder(EmbedderBase):
    """Embeds texts with a locally loaded sentence-transformers model."""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self._model = None
        self._load_lock = threading.Lock()

    @property
    def model(self):
        """Lazy-load the embedding model, once across threads."""
        if self._model is None:
            with self._load_lock:
                if self._model is None:
                    try:
                        from sentence_transformers import SentenceTransformer
                        self._model = SentenceTransformer(self.model_name)
                    except (ImportError, OSError) as e:
                        raise ServiceUnavailable(f"Could not load embedding model {self.model_name}: {e}") from e
        return self._model

    def embed(self, text: str) -> list[float]:
        model = self.model
        try:
            return model.encode(text).tolist()
        except Exception as e:
            raise ServiceUnavailable(f"Embedding with {self.model_name} failed: {e}") from e
