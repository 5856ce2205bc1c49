from types import SimpleNamespace

import pytest

import rag_engine.infrastructure.llm.openai_chat_adapter as llm_mod
from rag_engine.application.ports.llm_port import ChatMessage
from rag_engine.domain.errors import LLMError


class _FakeStream:
    def __init__(self, deltas):
        self._events = [
            SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=d))])
            for d in deltas
        ]
        self._events.insert(1, SimpleNamespace(choices=[]))

    def __aiter__(self):
        return self._iter()

    async def _iter(self):
        for event in self._events:
            yield event


class _FakeCompletions:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return _FakeStream(["Le ", None, "ciel ", "est bleu."])
        message = SimpleNamespace(content="Le ciel est bleu.")
        return SimpleNamespace(
            choices=[SimpleNamespace(message=message, finish_reason="stop")],
            usage=SimpleNamespace(total_tokens=42),
        )


def _install_fake_openai(monkeypatch, error: Exception | None = None):
    completions = _FakeCompletions(error)
    clients: list[dict] = []

    class _FakeAsyncOpenAI:
        def __init__(self, base_url, api_key):
            clients.append({"base_url": base_url, "api_key": api_key})
            self.chat = SimpleNamespace(completions=completions)

    module = SimpleNamespace(AsyncOpenAI=_FakeAsyncOpenAI)
    monkeypatch.setattr(llm_mod, "import_module", lambda name: module)
    return completions, clients


MESSAGES = [
    ChatMessage(role="system", content="Réponds en français."),
    ChatMessage(role="user", content="Pourquoi le ciel est bleu ?"),
]


@pytest.mark.asyncio
async def test_chat_sends_role_tagged_messages(monkeypatch):
    completions, clients = _install_fake_openai(monkeypatch)
    adapter = llm_mod.OpenAIChatAdapter(base_url="http://llm:8000/v1", model="qwen")

    resp = await adapter.chat(MESSAGES, temperature=0.2, max_tokens=64)

    assert resp.text == "Le ciel est bleu."
    assert resp.finish_reason == "stop"
    assert resp.usage_tokens == 42
    assert clients == [{"base_url": "http://llm:8000/v1", "api_key": "EMPTY"}]
    call = completions.calls[0]
    assert call["model"] == "qwen"
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 64
    assert call["messages"][1] == {"role": "user", "content": "Pourquoi le ciel est bleu ?"}


@pytest.mark.asyncio
async def test_client_is_created_once(monkeypatch):
    _, clients = _install_fake_openai(monkeypatch)
    adapter = llm_mod.OpenAIChatAdapter(base_url="http://llm:8000/v1")

    await adapter.chat(MESSAGES)
    await adapter.chat(MESSAGES)

    assert len(clients) == 1


@pytest.mark.asyncio
async def test_stream_yields_non_empty_deltas(monkeypatch):
    completions, _ = _install_fake_openai(monkeypatch)
    adapter = llm_mod.OpenAIChatAdapter(base_url="http://llm:8000/v1")

    deltas = [d async for d in adapter.stream(MESSAGES)]

    assert deltas == ["Le ", "ciel ", "est bleu."]
    assert completions.calls[0]["stream"] is True


@pytest.mark.asyncio
async def test_chat_errors_become_llm_errors(monkeypatch):
    _install_fake_openai(monkeypatch, error=ConnectionError("connection refused"))
    adapter = llm_mod.OpenAIChatAdapter(base_url="http://llm:8000/v1")

    with pytest.raises(LLMError, match="connection refused"):
        await adapter.chat(MESSAGES)


@pytest.mark.asyncio
async def test_stream_errors_become_llm_errors(monkeypatch):
    _install_fake_openai(monkeypatch, error=TimeoutError("read timeout"))
    adapter = llm_mod.OpenAIChatAdapter(base_url="http://llm:8000/v1")

    with pytest.raises(LLMError, match="read timeout"):
        _ = [d async for d in adapter.stream(MESSAGES)]


@pytest.mark.asyncio
async def test_missing_openai_package_becomes_llm_error(monkeypatch):
    def _missing(name):
        raise ModuleNotFoundError(f"No module named '{name}'")

    monkeypatch.setattr(llm_mod, "import_module", _missing)
    adapter = llm_mod.OpenAIChatAdapter(base_url="http://llm:8000/v1")

    with pytest.raises(LLMError, match="openai"):
        await adapter.chat(MESSAGES)
