import asyncio

import pytest

from mindbot.agent.loop import AgentLoop
from mindbot.config.schema import Profile, Settings
from mindbot.providers.base import LLMProvider
from mindbot.world.sim import SimulatedWorld


class ScriptedProvider(LLMProvider):
    """Replays canned model replies; memory-saving requests get a fixed summary."""

    def __init__(self, replies=None, default="Okay.", summary="Remember to check the inventory first."):
        super().__init__()
        self.replies = list(replies or [])
        self.default = default
        self.summary = summary
        self.calls = []
        self.memory_calls = []
        self.delay = 0.0

    async def send_request(self, turns, system_prompt):
        await asyncio.sleep(self.delay)
        # memory saving sends everything in the system prompt
        if not turns:
            self.memory_calls.append(system_prompt)
            return self.summary
        self.calls.append((turns, system_prompt))
        if self.replies:
            return self.replies.pop(0)
        return self.default

    def get_default_model(self):
        return "scripted"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        bots_dir=str(tmp_path / "bots"),
        database_url=f"sqlite:///{tmp_path / 'memory_bank.sqlite'}",
        spawn_delay=0,
        tick_interval=0.01,
        self_prompt_cooldown=0.05,
    )


@pytest.fixture
def world():
    return SimulatedWorld("andy", players={"steve": (3.0, 64.0, 0.0)}, step_delay=0)


@pytest.fixture
def make_agent(settings, world):
    created = []

    def _make(replies=None, task=None, name="andy", **overrides):
        agent_settings = settings.model_copy(update=overrides)
        provider = ScriptedProvider(replies)
        profile = Profile(name=name, model="gpt-4o-mini")
        agent = AgentLoop(profile, agent_settings, world, provider, task=task)
        created.append(agent)
        return agent, provider

    yield _make
    for agent in created:
        agent.stop()
        agent.memory_bank.close()
