"""Memoizing wrapper around the external embedding runtime.

One provider instance is owned by the composition root; it is the only
writer of the embedding cache. Cache entries live in a two-level map
(model id -> text -> vector) that is emptied whenever the active model
changes, so a vector is never served under the wrong model.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from rag_engine.application.ports.embedding_port import EmbeddingRuntimePort
from rag_engine.domain.errors import EmbeddingError, ModelNotLoadedError
from rag_engine.domain.models import EmbeddingModel
from rag_engine.domain.similarity import cosine_similarity, find_similar
from rag_engine.domain.types import Score, Vector

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class CacheStats:
    size: int
    model: str | None


class EmbeddingProvider:
    def __init__(self, runtime: EmbeddingRuntimePort) -> None:
        self._runtime = runtime
        self._model: EmbeddingModel | None = None
        self._loading = False
        self._cache: dict[str, dict[str, Vector]] = {}

    # ----- model lifecycle -----

    async def load_model(
        self,
        model: EmbeddingModel,
        on_progress: Callable[[float], None] | None = None,
    ) -> None:
        """Activate ``model``; a no-op if it is already the active one.

        Raises:
            EmbeddingError: If another load is in flight or the runtime fails.
        """
        if self._loading:
            raise EmbeddingError("An embedding model is already loading.")
        if self._model is not None and self._model.id == model.id:
            return

        self._loading = True
        # Nothing may be embedded or cached while the runtime swaps models.
        self._model = None
        self._cache.clear()
        if on_progress:
            on_progress(0.0)
        try:
            logger.info("Loading embedding model %s (%s)", model.name, model.repo_id)
            await self._runtime.load(model.repo_id)
        except EmbeddingError:
            raise
        except Exception as ex:  # noqa: BLE001
            raise EmbeddingError(f"Failed to load embedding model '{model.id}': {ex}") from ex
        finally:
            self._loading = False

        self._model = model
        logger.info("Embedding model %s ready", model.name)
        if on_progress:
            on_progress(100.0)

    def unload_model(self) -> None:
        self._runtime.unload()
        self._model = None
        self._cache.clear()

    def is_model_loaded(self) -> bool:
        return self._model is not None

    def is_model_loading(self) -> bool:
        return self._loading

    @property
    def current_model(self) -> EmbeddingModel | None:
        return self._model

    # ----- embedding -----

    async def embed(self, text: str) -> Vector:
        """Embed ``text`` with the active model, memoized per (model, text).

        Input is trimmed and truncated to roughly ``max_tokens * 4`` characters
        before it reaches the runtime, so long texts are embedded partially.

        Raises:
            ModelNotLoadedError: If no model is active.
            EmbeddingError: If the runtime fails.
        """
        model = self._model
        if model is None:
            raise ModelNotLoadedError("No embedding model loaded.")

        cached = self._cache.get(model.id, {}).get(text)
        if cached is not None:
            return cached

        clean = text.strip()
        limit = model.max_tokens * CHARS_PER_TOKEN
        if len(clean) > limit:
            clean = clean[:limit]

        try:
            raw = await self._runtime.embed(clean)
        except EmbeddingError:
            raise
        except Exception as ex:  # noqa: BLE001
            raise EmbeddingError(f"Embedding failed: {ex}") from ex
        vector: Vector = tuple(float(x) for x in raw)

        # The active model may have changed while the runtime was awaited.
        if self._model is model:
            self._cache.setdefault(model.id, {})[text] = vector
        return vector

    async def embed_batch(
        self,
        texts: Sequence[str],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[Vector]:
        vectors: list[Vector] = []
        for i, text in enumerate(texts):
            vectors.append(await self.embed(text))
            if on_progress:
                on_progress(i + 1, len(texts))
        return vectors

    # ----- similarity -----

    @staticmethod
    def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> Score:
        return cosine_similarity(a, b)

    @staticmethod
    def find_similar(
        query: Sequence[float],
        candidates: Sequence[tuple[Sequence[float], T]],
        threshold: float = 0.5,
        max_results: int = 10,
    ) -> list[tuple[Score, T]]:
        return find_similar(query, candidates, threshold, max_results)

    # ----- cache -----

    def cache_size(self) -> int:
        return sum(len(bucket) for bucket in self._cache.values())

    def clear_cache(self) -> None:
        self._cache.clear()

    def cache_stats(self) -> CacheStats:
        return CacheStats(
            size=self.cache_size(),
            model=self._model.name if self._model else None,
        )
