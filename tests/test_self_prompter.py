import asyncio

from mindbot.agent.self_prompter import SelfPromptState
from mindbot.bus.events import InboundMessage


async def wait_for_loop_exit(prompter, timeout=5.0):
    waited = 0.0
    while prompter.loop_active and waited < timeout:
        await asyncio.sleep(0.01)
        waited += 0.01


def test_start_requires_prompt(make_agent):
    agent, _ = make_agent()
    assert agent.self_prompter.start("   ") == "No prompt specified. Ignoring request."
    assert agent.self_prompter.state is SelfPromptState.IDLE


def test_start_then_stop_is_idle(make_agent):
    agent, provider = make_agent()
    prompter = agent.self_prompter

    async def scenario():
        prompter.start("collect wood")
        assert prompter.state is SelfPromptState.RUNNING
        await prompter.stop(graceful=False)

    asyncio.run(scenario())
    assert prompter.state is SelfPromptState.IDLE
    assert not prompter.on
    assert not prompter.loop_active


def test_non_graceful_stop_cancels_action(make_agent):
    agent, _ = make_agent()
    prompter = agent.self_prompter

    async def endless():
        while not agent.context.should_interrupt():
            await asyncio.sleep(0.01)

    async def scenario():
        action = asyncio.create_task(agent.actions.run_action("endless", endless))
        await asyncio.sleep(0.03)
        prompter.start("collect wood")
        await prompter.stop(graceful=False)
        return await action

    result = asyncio.run(scenario())
    assert result.interrupted
    assert not agent.actions.executing


def test_stops_after_turns_without_commands(make_agent, world):
    agent, provider = make_agent()
    provider.default = "I am thinking about it."
    prompter = agent.self_prompter

    async def scenario():
        prompter.start("build a house")
        await wait_for_loop_exit(prompter)

    asyncio.run(scenario())
    assert len(provider.calls) == 3
    assert not prompter.on
    assert world.chat_lines()[-1] == (
        "Agent did not use command in the last 3 auto-prompts. Stopping auto-prompting."
    )
    goal_turns = [t for t in agent.history.turns if "self-prompting with the goal: 'build a house'" in t.content]
    assert len(goal_turns) == 3


def test_should_interrupt_yields_to_external_input(make_agent):
    agent, _ = make_agent()
    prompter = agent.self_prompter
    assert not prompter.should_interrupt(True)

    asyncio.run(agent.bus.publish_inbound(InboundMessage(source="steve", content="hey", external=True)))
    assert prompter.should_interrupt(True)
    assert not prompter.should_interrupt(False)


def test_loop_yields_and_restarts_after_cooldown(make_agent):
    agent, provider = make_agent(self_prompt_cooldown=0.05)
    prompter = agent.self_prompter
    provider.default = "!stats"
    provider.delay = 0.01

    async def scenario():
        prompter.start("explore")
        await asyncio.sleep(0.02)
        await agent.bus.publish_inbound(InboundMessage(source="steve", content="hey", external=True))
        await wait_for_loop_exit(prompter)
        paused = prompter.state
        await agent.bus.consume_inbound()
        await prompter.update(0.1)
        restarted = prompter.state
        await prompter.stop(graceful=True)
        return paused, restarted

    paused, restarted = asyncio.run(scenario())
    assert paused is SelfPromptState.PAUSED
    assert restarted is SelfPromptState.RUNNING
    assert prompter.state is SelfPromptState.IDLE


def test_user_action_pauses_loop(make_agent):
    agent, _ = make_agent()
    prompter = agent.self_prompter
    prompter.loop_active = True
    prompter.handle_user_prompted_cmd(is_self_prompt=True, is_action=True)
    assert not prompter.interrupt
    prompter.handle_user_prompted_cmd(is_self_prompt=False, is_action=False)
    assert not prompter.interrupt
    prompter.handle_user_prompted_cmd(is_self_prompt=False, is_action=True)
    assert prompter.interrupt
