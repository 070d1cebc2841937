import asyncio
from typing import List
import numpy as np

from .logging_config import logger


class SentenceTransformerEmbedder:
    """
    Local sentence-transformers embeddings, normalized so that dot product
    equals cosine similarity. The model is loaded lazily on first use or
    eagerly via preload() at startup.
    """

    def __init__(self, model_name: str = "sentence-transformers/all-MiniLM-L6-v2", dimension: int = 384):
        self.model_name = model_name
        self.dimension = dimension
        self._model = None

    def preload(self):
        """Preload the embedding model on startup to avoid first-request delay."""
        if self._model is None:
            from sentence_transformers import SentenceTransformer
            logger.info("Loading embedding model", model=self.model_name)

            # Explicit tokenizer settings avoid a FutureWarning
            self._model = SentenceTransformer(
                self.model_name,
                tokenizer_kwargs={'clean_up_tokenization_spaces': False}
            )

            # Warm up with a test embedding
            self._model.encode(["test"], normalize_embeddings=True, show_progress_bar=False)
            logger.info("Embedding model loaded", model=self.model_name)
        return self._model

    def embed_texts(self, texts: List[str]) -> List[List[float]]:
        model = self.preload()
        vecs = model.encode(texts, normalize_embeddings=True, show_progress_bar=False)
        if isinstance(vecs, np.ndarray):
            return vecs.tolist()
        return [list(v) for v in vecs]

    async def embed(self, text: str) -> List[float]:
        vecs = await asyncio.to_thread(self.embed_texts, [text])
        return vecs[0]
