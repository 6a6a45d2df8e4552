from mindbot.providers.base import LLMProvider
from mindbot.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LiteLLMProvider"]
