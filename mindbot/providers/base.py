"""Base LLM provider interface."""

from abc import ABC, abstractmethod

FALLBACK_REPLY = "My brain disconnected, try again."


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    The turn loop only ever calls `send_request`, so backends can be swapped
    without touching it.
    """

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def send_request(self, turns: list[dict[str, str]], system_prompt: str) -> str:
        """
        Get one completion for a conversation.

        Args:
            turns: Chat messages with 'role' and 'content', oldest first.
            system_prompt: Instructions placed before the conversation.

        Returns:
            The completion text. Backend failures come back as a short spoken
            apology rather than an exception.
        """
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass


def strict_format(turns: list[dict[str, str]]) -> list[dict[str, str]]:
    """Fold system turns into user turns and merge neighbours with the same role.

    Some backends reject anything but a strictly alternating user/assistant
    conversation that opens with the user.
    """
    messages: list[dict[str, str]] = []
    for turn in turns:
        role, content = turn["role"], turn["content"]
        if role == "system":
            role, content = "user", "SYSTEM: " + content
        if messages and messages[-1]["role"] == role:
            messages[-1] = {"role": role, "content": messages[-1]["content"] + "\n" + content}
        else:
            messages.append({"role": role, "content": content})
    if not messages or messages[0]["role"] != "user":
        messages.insert(0, {"role": "user", "content": "_"})
    return messages
