import asyncio

from mindbot.agent.actions import ActionManager


def test_run_action_reports_output(make_agent):
    agent, _ = make_agent()

    async def action():
        agent.context.log("dug a hole")

    result = asyncio.run(agent.actions.run_action("dig", action))
    assert result.success
    assert result.message == "Action output:\ndug a hole"
    assert not result.interrupted
    assert not agent.actions.executing


def test_stop_interrupts_running_action(make_agent):
    agent, _ = make_agent()

    async def endless():
        while not agent.context.should_interrupt():
            agent.context.log("still going")
            await asyncio.sleep(0.01)

    async def scenario():
        task = asyncio.create_task(agent.actions.run_action("endless", endless))
        await asyncio.sleep(0.05)
        assert agent.actions.executing
        await agent.actions.stop()
        return await task

    result = asyncio.run(scenario())
    assert result.interrupted
    assert result.message == ""
    assert not agent.actions.executing


def test_new_action_replaces_old_one(make_agent):
    agent, _ = make_agent()
    finished = []

    async def slow():
        while not agent.context.should_interrupt():
            await asyncio.sleep(0.01)
        finished.append("slow")

    async def fast():
        finished.append("fast")

    async def scenario():
        first = asyncio.create_task(agent.actions.run_action("slow", slow))
        await asyncio.sleep(0.03)
        second = await agent.actions.run_action("fast", fast)
        return await first, second

    first, second = asyncio.run(scenario())
    assert finished == ["slow", "fast"]
    assert first.interrupted
    assert second.message == "Action output:\n"


def test_exception_is_reported(make_agent):
    agent, _ = make_agent()

    async def broken():
        agent.context.log("about to fail")
        raise RuntimeError("pickaxe broke")

    result = asyncio.run(agent.actions.run_action("broken", broken))
    assert not result.success
    assert "about to fail" in result.message
    assert "!!Action threw exception!!\nError: pickaxe broke" in result.message
    assert not agent.actions.executing


def test_long_output_is_shortened(make_agent):
    agent, _ = make_agent()

    async def chatty():
        for i in range(100):
            agent.context.log(f"step {i:03d}")

    result = asyncio.run(agent.actions.run_action("chatty", chatty))
    assert "has been shortened" in result.message
    assert "step 000" in result.message
    assert "step 099" in result.message
    assert "step 050" not in result.message


def test_timeout_stops_action(make_agent):
    agent, _ = make_agent()

    async def endless():
        agent.context.log("working")
        while not agent.context.should_interrupt():
            await asyncio.sleep(0.01)

    # 0.001 minutes is 60 ms
    result = asyncio.run(agent.actions.run_action("endless", endless, timeout=0.001))
    assert result.timed_out
    assert result.interrupted
    assert "working" in result.message
    assert any("timed out" in t.content for t in agent.history.turns)


def test_resume_action_runs_when_idle(make_agent):
    agent, _ = make_agent()
    runs = []

    async def follow():
        runs.append(1)
        while not agent.context.should_interrupt():
            await asyncio.sleep(0.01)

    async def run_then_stop(coro):
        task = asyncio.create_task(coro)
        await asyncio.sleep(0.03)
        await agent.actions.stop()
        return await task

    async def scenario():
        await run_then_stop(agent.actions.run_action("!followPlayer", follow, resume=True))
        assert agent.actions.resume_func is follow
        await run_then_stop(agent.actions.resume_action())
        agent.actions.cancel_resume()
        await agent.actions.resume_action()

    asyncio.run(scenario())
    assert runs == [1, 1]
    assert agent.actions.resume_func is None


def test_resume_dropped_when_action_ends_on_its_own(make_agent, world):
    agent, _ = make_agent()
    calls = []
    follow_player = world.follow_player

    async def counting_follow(username, ctx, distance=4):
        calls.append(username)
        await follow_player(username, ctx, distance)

    world.follow_player = counting_follow

    async def scenario():
        agent.start_events()
        res = await agent.commands.execute(agent, '!followPlayer("nobody", 2)')
        await asyncio.sleep(0.2)
        agent.stop()
        return res

    res = asyncio.run(scenario())
    assert res == "Action output:\nCould not find nobody."
    assert calls == ["nobody"]
    assert agent.actions.resume_func is None


def test_resume_skipped_while_self_prompting(make_agent):
    agent, _ = make_agent()
    runs = []

    async def follow():
        runs.append(1)

    async def scenario():
        await agent.actions.run_action("!followPlayer", follow, resume=True)
        agent.self_prompter.on = True
        await agent.actions.resume_action()

    asyncio.run(scenario())
    assert runs == [1]


def test_stop_kills_unresponsive_action(make_agent):
    agent, _ = make_agent(action_stop_timeout=0.3)
    manager = ActionManager(agent)
    manager.executing = True
    killed = []
    agent.clean_kill = lambda msg="", code=1: killed.append(msg) or setattr(manager, "executing", False)

    asyncio.run(manager.stop())
    assert killed and "refused stop" in killed[0]
