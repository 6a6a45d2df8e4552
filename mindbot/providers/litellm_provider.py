"""LiteLLM provider: one gateway for Gemini, OpenAI, Anthropic, Replicate and Ollama."""

from __future__ import annotations

import os

import litellm
from litellm import acompletion
from loguru import logger

from mindbot.config.schema import ModelConfig
from mindbot.providers.base import FALLBACK_REPLY, LLMProvider, strict_format

# litellm routes on the model-name prefix
API_PREFIXES = {
    "google": "gemini/",
    "openai": "",
    "anthropic": "",
    "replicate": "replicate/",
    "ollama": "ollama/",
}

API_KEY_ENV = {
    "google": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "replicate": "REPLICATE_API_KEY",
}

STRICT_APIS = {"anthropic", "ollama"}


class LiteLLMProvider(LLMProvider):
    """Sends chat requests through litellm.acompletion."""

    def __init__(
        self,
        model: str,
        api: str = "openai",
        api_key: str | None = None,
        api_base: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 1024,
    ):
        super().__init__(api_key=api_key, api_base=api_base)
        self.api = api
        self.temperature = temperature
        self.max_tokens = max_tokens
        prefix = API_PREFIXES.get(api, "")
        self.model = model if not prefix or model.startswith(prefix) else prefix + model

    @classmethod
    def from_config(cls, config: ModelConfig) -> LiteLLMProvider:
        api = config.resolved_api()
        env = API_KEY_ENV.get(api)
        return cls(
            model=config.model,
            api=api,
            api_key=os.getenv(env) if env else None,
            api_base=config.url,
        )

    def get_default_model(self) -> str:
        return self.model

    async def send_request(self, turns: list[dict[str, str]], system_prompt: str,
                           _retried: bool = False) -> str:
        conversation = strict_format(turns) if self.api in STRICT_APIS else list(turns)
        messages = [{"role": "system", "content": system_prompt}] + conversation
        kwargs = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        logger.debug("Awaiting {} response ({} turns)", self.model, len(turns))
        try:
            response = await acompletion(**kwargs)
            content = response.choices[0].message.content or ""
            return content.strip()
        except litellm.ContextWindowExceededError:
            if not _retried and len(turns) > 1:
                logger.warning("Context length exceeded, trying again with shorter context.")
                return await self.send_request(turns[1:], system_prompt, _retried=True)
            logger.error("Context length exceeded and the conversation cannot be shortened")
            return FALLBACK_REPLY
        except Exception as e:
            logger.error("Model request to {} failed: {}", self.model, e)
            return FALLBACK_REPLY
