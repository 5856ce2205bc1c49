from collections.abc import Sequence
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingRuntimePort(Protocol):
    """External embedding model runtime (load/unload and inference).

    ``embed`` returns a fixed-length vector for the loaded model and may
    raise when no model is loaded.
    """

    async def load(self, repo_id: str) -> None: ...

    def unload(self) -> None: ...

    async def embed(self, text: str) -> Sequence[float]: ...
