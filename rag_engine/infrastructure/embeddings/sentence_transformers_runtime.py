from __future__ import annotations

import asyncio
from collections.abc import Sequence
from functools import partial
from dataclasses import dataclass
from typing import Any

from rag_engine.application.ports.embedding_port import EmbeddingRuntimePort
from rag_engine.domain.errors import EmbeddingError, ModelNotLoadedError

# Lazy import for testability (allow monkeypatching fake SentenceTransformer)
SentenceTransformer: Any | None
try:  # pragma: no cover - exercised via tests with monkeypatch
    from sentence_transformers import SentenceTransformer as _SentenceTransformer
except Exception:  # noqa: BLE001
    SentenceTransformer = None
else:  # pragma: no cover - exercised in integration
    SentenceTransformer = _SentenceTransformer


@dataclass
class SentenceTransformersRuntime(EmbeddingRuntimePort):
    """Mean-pooled, L2-normalized sentence embeddings via sentence-transformers."""

    device: str = "cpu"  # switch to "cuda" when available
    local_files_only: bool = False  # support offline deployments
    _model: Any | None = None
    _repo_id: str | None = None

    async def load(self, repo_id: str) -> None:
        if self._model is not None and self._repo_id == repo_id:
            return
        if SentenceTransformer is None:
            raise EmbeddingError("sentence-transformers not installed.")
        loop = asyncio.get_running_loop()
        try:
            # Model construction reads weights from disk or the hub
            self._model = await loop.run_in_executor(
                None,
                partial(
                    SentenceTransformer,
                    repo_id,
                    device=self.device,
                    local_files_only=self.local_files_only,
                ),
            )
        except Exception as ex:  # noqa: BLE001
            self._model = None
            self._repo_id = None
            raise EmbeddingError(f"Failed to load embedding model '{repo_id}': {ex}") from ex
        self._repo_id = repo_id

    def unload(self) -> None:
        self._model = None
        self._repo_id = None

    async def embed(self, text: str) -> list[float]:
        model = self._model
        if model is None:
            raise ModelNotLoadedError("No embedding model loaded.")
        loop = asyncio.get_running_loop()
        try:
            raw_vector = await loop.run_in_executor(
                None,
                partial(
                    model.encode,
                    text,
                    normalize_embeddings=True,
                    convert_to_numpy=True,
                    show_progress_bar=False,
                ),
            )
        except Exception as ex:  # noqa: BLE001
            raise EmbeddingError(f"Embedding text failed: {ex}") from ex
        vector: Sequence[float] = raw_vector
        return [float(x) for x in vector]
