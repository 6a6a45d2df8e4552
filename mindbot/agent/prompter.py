"""Fills profile prompt templates and sends them to the model."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from loguru import logger

from mindbot.agent.history import Turn, stringify_turns
from mindbot.config.schema import Profile
from mindbot.errors import MemorySavingError
from mindbot.providers.base import FALLBACK_REPLY, LLMProvider

if TYPE_CHECKING:
    from mindbot.agent.loop import AgentLoop

PLACEHOLDER_RE = re.compile(r"\$[A-Z_]+")


class Prompter:
    """Builds system prompts from the profile templates."""

    def __init__(self, agent: AgentLoop, profile: Profile, provider: LLMProvider):
        self.agent = agent
        self.profile = profile
        self.provider = provider

    async def replace_strings(
        self,
        prompt: str,
        turns: list[Turn] | None = None,
        prev_memory: str | None = None,
        to_summarize: list[Turn] | None = None,
    ) -> str:
        agent = self.agent
        prompt = prompt.replace("$NAME", agent.name)
        if "$STATS" in prompt:
            prompt = prompt.replace("$STATS", await agent.commands.get("!stats").perform(agent))
        if "$INVENTORY" in prompt:
            prompt = prompt.replace("$INVENTORY", await agent.commands.get("!inventory").perform(agent))
        if "$COMMAND_DOCS" in prompt:
            prompt = prompt.replace("$COMMAND_DOCS", agent.commands.get_docs(agent.blocked_actions))
        if "$MEMORY" in prompt:
            prompt = prompt.replace("$MEMORY", prev_memory or "None.")
        if "$TO_SUMMARIZE" in prompt:
            prompt = prompt.replace("$TO_SUMMARIZE", stringify_turns(to_summarize or []))
        if "$CONVO" in prompt:
            prompt = prompt.replace("$CONVO", "Recent conversation:\n" + stringify_turns(turns or []))
        if "$SELF_PROMPT" in prompt:
            goal = ""
            if agent.self_prompter.on:
                goal = f'YOUR CURRENT ASSIGNED GOAL: "{agent.self_prompter.prompt}"\n'
            prompt = prompt.replace("$SELF_PROMPT", goal)

        remaining = PLACEHOLDER_RE.findall(prompt)
        if remaining:
            logger.warning("Unknown prompt placeholders: {}", ", ".join(remaining))
        return prompt

    async def prompt_convo(self, turns: list[Turn]) -> str:
        prompt = await self.replace_strings(
            self.profile.conversing, turns, prev_memory=self.agent.history.memory
        )
        messages = [t.to_message(self.agent.name) for t in turns]
        return await self.provider.send_request(messages, prompt)

    async def prompt_mem_saving(self, prev_memory: str | None, to_summarize: list[Turn]) -> str:
        prompt = await self.replace_strings(
            self.profile.saving_memory, prev_memory=prev_memory, to_summarize=to_summarize
        )
        summary = await self.provider.send_request([], prompt)
        if not summary.strip() or summary.strip() == FALLBACK_REPLY:
            raise MemorySavingError("memory saving request failed")
        return summary
