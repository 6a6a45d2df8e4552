import asyncio

import pytest

from mindbot.agent.history import Turn
from mindbot.errors import MemorySavingError
from mindbot.providers.base import FALLBACK_REPLY


def test_conversing_prompt_is_filled(make_agent, world):
    agent, provider = make_agent(["hi"])
    world.chat("/give andy dirt 3")
    asyncio.run(agent.handle_message("steve", "hello"))

    _, system_prompt = provider.calls[0]
    assert "named andy" in system_prompt
    assert "- dirt: 3" in system_prompt
    assert "*COMMAND DOCS" in system_prompt
    assert "Summarized memory:'None.'" in system_prompt
    assert "$" not in system_prompt


def test_blocked_commands_hidden_from_docs(make_agent):
    agent, provider = make_agent(["hi"])
    agent.blocked_actions = ["!collectBlocks"]
    asyncio.run(agent.handle_message("steve", "hello"))
    _, system_prompt = provider.calls[0]
    assert "!collectBlocks" not in system_prompt


def test_self_prompt_goal_in_prompt(make_agent):
    agent, provider = make_agent(["hi"])
    agent.self_prompter.on = True
    agent.self_prompter.prompt = "build a tower"
    asyncio.run(agent.handle_message("steve", "hello"))
    _, system_prompt = provider.calls[0]
    assert 'YOUR CURRENT ASSIGNED GOAL: "build a tower"' in system_prompt


def test_memory_saving_prompt(make_agent):
    agent, provider = make_agent()
    turns = [Turn(speaker="steve", content="dig down"), Turn(speaker="system", content="Collected 1 dirt.")]
    summary = asyncio.run(agent.prompter.prompt_mem_saving("old notes", turns))

    assert summary == provider.summary
    prompt = provider.memory_calls[0]
    assert "Old Memory: 'old notes'" in prompt
    assert "steve: dig down\nSystem output: Collected 1 dirt." in prompt


def test_unknown_placeholder_is_left_alone(make_agent):
    agent, _ = make_agent()
    res = asyncio.run(agent.prompter.replace_strings("Hi $NAME, $UNKNOWN"))
    assert res == "Hi andy, $UNKNOWN"


def test_memory_saving_rejects_fallback_reply(make_agent):
    agent, provider = make_agent()
    provider.summary = FALLBACK_REPLY
    turns = [Turn(speaker="steve", content="dig down")]
    with pytest.raises(MemorySavingError):
        asyncio.run(agent.prompter.prompt_mem_saving("old notes", turns))
