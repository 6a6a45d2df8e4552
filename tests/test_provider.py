import asyncio
from types import SimpleNamespace

import litellm

from mindbot.config.schema import ModelConfig
from mindbot.providers import LiteLLMProvider
from mindbot.providers.base import FALLBACK_REPLY, strict_format


def fake_response(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


def test_strict_format_folds_system_turns():
    turns = [
        {"role": "assistant", "content": "hi"},
        {"role": "system", "content": "Collected 3 stone."},
        {"role": "user", "content": "steve: nice"},
    ]
    assert strict_format(turns) == [
        {"role": "user", "content": "_"},
        {"role": "assistant", "content": "hi"},
        {"role": "user", "content": "SYSTEM: Collected 3 stone.\nsteve: nice"},
    ]


def test_model_prefix_follows_api():
    assert LiteLLMProvider("gemini-1.5-flash", api="google").model == "gemini/gemini-1.5-flash"
    assert LiteLLMProvider("gemini/gemini-1.5-flash", api="google").model == "gemini/gemini-1.5-flash"
    assert LiteLLMProvider("gpt-4o-mini", api="openai").model == "gpt-4o-mini"
    assert LiteLLMProvider("llama3", api="ollama").model == "ollama/llama3"


def test_from_config_reads_key(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    provider = LiteLLMProvider.from_config(ModelConfig(model="gpt-4o-mini"))
    assert provider.api == "openai"
    assert provider.api_key == "sk-test"


def test_send_request(monkeypatch):
    seen = {}

    async def fake_acompletion(**kwargs):
        seen.update(kwargs)
        return fake_response("  hello  ")

    monkeypatch.setattr("mindbot.providers.litellm_provider.acompletion", fake_acompletion)
    provider = LiteLLMProvider("gpt-4o-mini", api="openai")
    res = asyncio.run(provider.send_request([{"role": "user", "content": "steve: hi"}], "be nice"))

    assert res == "hello"
    assert seen["messages"][0] == {"role": "system", "content": "be nice"}
    assert seen["messages"][1] == {"role": "user", "content": "steve: hi"}


def test_failure_returns_fallback(monkeypatch):
    async def broken(**kwargs):
        raise RuntimeError("connection refused")

    monkeypatch.setattr("mindbot.providers.litellm_provider.acompletion", broken)
    provider = LiteLLMProvider("gpt-4o-mini", api="openai")
    res = asyncio.run(provider.send_request([{"role": "user", "content": "hi"}], "sys"))
    assert res == FALLBACK_REPLY


def test_context_overflow_retries_with_shorter_history(monkeypatch):
    lengths = []

    async def picky(**kwargs):
        lengths.append(len(kwargs["messages"]))
        if len(lengths) == 1:
            raise litellm.ContextWindowExceededError(
                message="too long", model="gpt-4o-mini", llm_provider="openai"
            )
        return fake_response("fits now")

    monkeypatch.setattr("mindbot.providers.litellm_provider.acompletion", picky)
    provider = LiteLLMProvider("gpt-4o-mini", api="openai")
    turns = [{"role": "user", "content": str(i)} for i in range(4)]
    res = asyncio.run(provider.send_request(turns, "sys"))

    assert res == "fits now"
    assert lengths == [5, 4]
