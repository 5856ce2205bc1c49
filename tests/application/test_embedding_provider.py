import asyncio

import pytest

from rag_engine.application.services.embedding_provider import EmbeddingProvider
from rag_engine.domain.errors import EmbeddingError, ModelNotLoadedError
from rag_engine.domain.models import AVAILABLE_EMBEDDING_MODELS

MINILM_L6, MINILM_L12 = AVAILABLE_EMBEDDING_MODELS


class FakeRuntime:
    """Stand-in for the external embedding runtime; records every call."""

    def __init__(self, fail_load: bool = False, fail_embed: bool = False) -> None:
        self.fail_load = fail_load
        self.fail_embed = fail_embed
        self.loaded: list[str] = []
        self.embedded: list[str] = []
        self.unloads = 0
        self.gate: asyncio.Event | None = None

    async def load(self, repo_id: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_load:
            raise RuntimeError("download interrupted")
        self.loaded.append(repo_id)

    def unload(self) -> None:
        self.unloads += 1

    async def embed(self, text: str) -> list[float]:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_embed:
            raise RuntimeError("out of memory")
        self.embedded.append(text)
        return [float(len(text)), 1.0, 0.0]


@pytest.mark.asyncio
async def test_embed_requires_a_loaded_model():
    provider = EmbeddingProvider(FakeRuntime())
    with pytest.raises(ModelNotLoadedError):
        await provider.embed("bonjour")


@pytest.mark.asyncio
async def test_embed_is_memoized_per_text():
    runtime = FakeRuntime()
    provider = EmbeddingProvider(runtime)
    await provider.load_model(MINILM_L6)

    first = await provider.embed("bonjour")
    second = await provider.embed("bonjour")

    assert first == second == (7.0, 1.0, 0.0)
    assert runtime.embedded == ["bonjour"]
    assert provider.cache_size() == 1
    stats = provider.cache_stats()
    assert stats.size == 1
    assert stats.model == MINILM_L6.name


@pytest.mark.asyncio
async def test_embed_trims_and_truncates_to_token_budget():
    runtime = FakeRuntime()
    provider = EmbeddingProvider(runtime)
    await provider.load_model(MINILM_L6)

    await provider.embed("  " + "a" * 5000 + "  ")

    assert runtime.embedded == ["a" * (MINILM_L6.max_tokens * 4)]


@pytest.mark.asyncio
async def test_reloading_same_model_is_a_no_op():
    runtime = FakeRuntime()
    provider = EmbeddingProvider(runtime)
    await provider.load_model(MINILM_L6)
    await provider.embed("bonjour")

    await provider.load_model(MINILM_L6)

    assert runtime.loaded == [MINILM_L6.repo_id]
    assert provider.cache_size() == 1


@pytest.mark.asyncio
async def test_switching_model_clears_the_cache():
    runtime = FakeRuntime()
    provider = EmbeddingProvider(runtime)
    progress: list[float] = []
    await provider.load_model(MINILM_L6)
    await provider.embed("bonjour")

    await provider.load_model(MINILM_L12, on_progress=progress.append)

    assert provider.current_model == MINILM_L12
    assert provider.cache_size() == 0
    assert progress == [0.0, 100.0]
    await provider.embed("bonjour")
    assert runtime.embedded == ["bonjour", "bonjour"]


@pytest.mark.asyncio
async def test_failed_load_leaves_no_active_model():
    provider = EmbeddingProvider(FakeRuntime(fail_load=True))

    with pytest.raises(EmbeddingError, match="download interrupted"):
        await provider.load_model(MINILM_L6)

    assert provider.is_model_loaded() is False
    assert provider.is_model_loading() is False


@pytest.mark.asyncio
async def test_concurrent_load_is_rejected():
    runtime = FakeRuntime()
    runtime.gate = asyncio.Event()
    provider = EmbeddingProvider(runtime)

    pending = asyncio.create_task(provider.load_model(MINILM_L6))
    await asyncio.sleep(0)
    assert provider.is_model_loading() is True

    with pytest.raises(EmbeddingError, match="already loading"):
        await provider.load_model(MINILM_L12)

    runtime.gate.set()
    await pending
    assert provider.current_model == MINILM_L6


@pytest.mark.asyncio
async def test_runtime_failure_is_wrapped_and_not_cached():
    provider = EmbeddingProvider(FakeRuntime(fail_embed=True))
    await provider.load_model(MINILM_L6)

    with pytest.raises(EmbeddingError, match="out of memory"):
        await provider.embed("bonjour")
    assert provider.cache_size() == 0


@pytest.mark.asyncio
async def test_vector_is_not_cached_when_model_changes_mid_embed():
    runtime = FakeRuntime()
    provider = EmbeddingProvider(runtime)
    await provider.load_model(MINILM_L6)
    runtime.gate = asyncio.Event()

    pending = asyncio.create_task(provider.embed("bonjour"))
    await asyncio.sleep(0)
    provider.unload_model()
    runtime.gate.set()

    assert await pending == (7.0, 1.0, 0.0)
    assert provider.cache_size() == 0
    assert runtime.unloads == 1


@pytest.mark.asyncio
async def test_embed_batch_reports_progress():
    provider = EmbeddingProvider(FakeRuntime())
    await provider.load_model(MINILM_L6)
    ticks: list[tuple[int, int]] = []

    vectors = await provider.embed_batch(
        ["a", "bb", "ccc"], on_progress=lambda i, n: ticks.append((i, n))
    )

    assert [v[0] for v in vectors] == [1.0, 2.0, 3.0]
    assert ticks == [(1, 3), (2, 3), (3, 3)]


def test_similarity_helpers_delegate_to_domain():
    assert EmbeddingProvider.cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0)
    out = EmbeddingProvider.find_similar([1.0, 0.0], [([1.0, 0.0], "a"), ([0.0, 1.0], "b")])
    assert [p for _, p in out] == ["a"]
