import asyncio
import json

from mindbot.agent.history import History, Turn, stringify_turns
from mindbot.errors import MemorySavingError
from mindbot.providers.base import FALLBACK_REPLY


async def fake_summarize(memory, turns):
    return f"summary of {len(turns)} turns"


def test_turn_roles():
    assert Turn(speaker="system", content="x").to_message("andy") == {"role": "system", "content": "x"}
    assert Turn(speaker="andy", content="hi").to_message("andy") == {"role": "assistant", "content": "hi"}
    assert Turn(speaker="steve", content="yo").to_message("andy") == {"role": "user", "content": "steve: yo"}


def test_stringify_turns():
    turns = [Turn(speaker="system", content="Collected 3 stone."), Turn(speaker="steve", content="nice")]
    assert stringify_turns(turns) == "System output: Collected 3 stone.\nsteve: nice"


def test_compaction_keeps_anchors_order_and_limit(tmp_path):
    history = History("andy", tmp_path, summarize=fake_summarize, max_chars=1500, memory_max_chars=100)

    async def scenario():
        for i in range(40):
            await history.add("steve" if i % 2 else "andy", f"message number {i} " + "x" * 20)

    asyncio.run(scenario())

    assert history.serialized_size() <= 1500
    anchors = [t for t in history.turns if t.memory]
    assert anchors
    assert all(t.speaker == "system" and t.content.startswith("Summarized memory: ") for t in anchors)
    # the newest turn is always kept verbatim
    assert history.turns[-1].content.startswith("message number 39")
    # surviving ordinary turns keep their relative order
    numbers = [int(t.content.split()[2]) for t in history.turns if not t.memory]
    assert numbers == sorted(numbers)
    assert history.memory.startswith("summary of")
    assert history.archive_fp.exists()


def test_anchor_is_rewritten_not_dropped(tmp_path):
    history = History("andy", tmp_path, summarize=fake_summarize, max_chars=800)

    async def scenario():
        for i in range(30):
            await history.add("steve", f"line {i} " + "y" * 30)

    asyncio.run(scenario())
    assert history.turns[0].memory

    asyncio.run(scenario())
    anchors = [t for t in history.turns if t.memory]
    assert len(anchors) == 1
    assert history.turns[0] is anchors[0]
    assert anchors[0].content == f"Summarized memory: {history.memory}"


def test_summary_is_capped(tmp_path):
    async def long_summary(memory, turns):
        return "z" * 1000

    history = History("andy", tmp_path, summarize=long_summary, max_chars=600, memory_max_chars=50)

    async def scenario():
        for i in range(20):
            await history.add("steve", f"line {i} " + "y" * 30)

    asyncio.run(scenario())
    assert len(history.memory) == 50


def test_no_compaction_without_summarizer(tmp_path):
    history = History("andy", tmp_path, max_chars=100)

    async def scenario():
        for i in range(10):
            await history.add("steve", "hello there " * 5)

    asyncio.run(scenario())
    assert len(history.turns) == 10


def test_save_and_load(tmp_path):
    history = History("andy", tmp_path)
    asyncio.run(history.add("steve", "hi"))
    history.memory = "likes oak"
    history.save(self_prompt="build a house", modes={"unstuck": False})

    data = json.loads(history.memory_fp.read_text())
    assert set(data) == {"name", "memory", "turns", "self_prompt", "modes"}

    restored = History("andy", tmp_path)
    save_data = restored.load()
    assert save_data["self_prompt"] == "build a house"
    assert restored.memory == "likes oak"
    assert [(t.speaker, t.content) for t in restored.turns] == [("steve", "hi")]


def test_load_missing_file(tmp_path):
    assert History("andy", tmp_path).load() is None


def test_load_truncated_file(tmp_path):
    history = History("andy", tmp_path)
    history.dir.mkdir(parents=True)
    history.memory_fp.write_text('{"name": "andy", "memory": "likes oak", "turns": [')
    data = history.load()
    assert data["name"] == "andy"
    assert history.memory == "likes oak"
    assert history.turns == []


def test_long_conversation_stays_under_limit(tmp_path):
    calls = []

    async def summarize(memory, turns):
        calls.append(memory)
        return f"summary {len(calls)}"

    history = History("andy", tmp_path, summarize=summarize, max_chars=3000)
    sizes = []

    async def scenario():
        for i in range(300):
            await history.add("steve" if i % 2 else "andy", f"message {i:03d} " + "w" * 43)
            sizes.append(history.serialized_size())

    asyncio.run(scenario())

    assert max(sizes) <= 3000
    assert len([t for t in history.turns if t.memory]) == 1
    assert len(calls) < 40
    # every summary builds on the one before it
    assert calls[0] is None
    assert calls[1:] == [f"summary {n}" for n in range(1, len(calls))]


def test_failed_summary_keeps_turns_and_memory(tmp_path):
    async def broken(memory, turns):
        raise MemorySavingError("memory saving request failed")

    history = History("andy", tmp_path, summarize=broken, max_chars=600)
    history.memory = "likes oak"

    async def scenario():
        for i in range(20):
            await history.add("steve", f"line {i} " + "y" * 30)

    asyncio.run(scenario())
    assert history.memory == "likes oak"
    assert len(history.turns) == 20
    assert not any(t.memory for t in history.turns)


def test_gateway_fallback_is_not_saved_as_memory(make_agent):
    agent, provider = make_agent(history_max_chars=800)
    provider.summary = FALLBACK_REPLY
    agent.history.memory = "likes oak"

    async def scenario():
        for i in range(20):
            await agent.history.add("steve", f"line {i} " + "y" * 30)

    asyncio.run(scenario())
    assert provider.memory_calls
    assert agent.history.memory == "likes oak"
    assert all(FALLBACK_REPLY not in t.content for t in agent.history.turns)
    assert len(agent.history.turns) == 20
