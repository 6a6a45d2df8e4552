"""Action commands: things the agent does in the world, plus control commands."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mindbot.agent.commands.base import CommandDef, CommandKind, Param, ParamType
from mindbot.agent.modes import DEFAULT_MODES

if TYPE_CHECKING:
    from mindbot.agent.loop import AgentLoop

INF = float("inf")


# control commands: act on the agent, not through the ActionManager

async def stop(agent: AgentLoop) -> str:
    await agent.actions.stop()
    agent.clear_bot_logs()
    agent.actions.cancel_resume()
    agent.world.emit("idle")
    msg = "Agent stopped."
    if agent.self_prompter.on:
        msg += " Self-prompting still active."
    return msg


async def stfu(agent: AgentLoop) -> None:
    agent.open_chat("Shutting up.")
    agent.shut_up()


async def restart(agent: AgentLoop) -> None:
    agent.clean_kill()


async def clear_chat(agent: AgentLoop) -> str:
    agent.history.clear()
    return f"{agent.name}'s chat history was cleared, starting new conversation from scratch."


async def remember_here(agent: AgentLoop, name: str) -> str:
    x, y, z = agent.world.position()
    agent.memory_bank.remember_place(name, x, y, z)
    return f'Location saved as "{name}".'


async def set_mode(agent: AgentLoop, mode_name: str, on: bool) -> str:
    if not agent.modes.exists(mode_name):
        return f"Mode {mode_name} does not exist. " + agent.modes.get_docs()
    state = "on" if on else "off"
    if agent.modes.is_on(mode_name) == on:
        return f"Mode {mode_name} is already {state}."
    agent.modes.set_on(mode_name, on)
    return f"Mode {mode_name} is now {state}."


async def goal(agent: AgentLoop, self_prompt: str) -> str | None:
    return agent.self_prompter.start(self_prompt)


async def end_goal(agent: AgentLoop) -> str:
    agent.self_prompter.request_stop(graceful=False)
    return "Self-prompting stopped."


# world actions: run inside the ActionManager and report through ctx.log

async def go_to(agent: AgentLoop, x: float, y: float, z: float) -> None:
    await agent.world.go_to(x, y, z, agent.context, closeness=1)


async def go_to_player(agent: AgentLoop, player_name: str, closeness: float) -> None:
    await agent.world.go_to_player(player_name, agent.context, closeness=closeness)


async def follow_player(agent: AgentLoop, player_name: str, follow_dist: float) -> None:
    await agent.world.follow_player(player_name, agent.context, distance=follow_dist)


async def move_away(agent: AgentLoop, distance: float) -> None:
    await agent.world.move_away(distance, agent.context)


async def collect_blocks(agent: AgentLoop, block_type: str, num: int) -> None:
    await agent.world.collect_blocks(block_type, num, agent.context)


async def give_player(agent: AgentLoop, player_name: str, item_name: str, num: int) -> None:
    await agent.world.give_to_player(player_name, item_name, num, agent.context)


async def go_to_place(agent: AgentLoop, name: str) -> None:
    pos = agent.memory_bank.recall_place(name)
    if pos is None:
        agent.context.log(f"No location named '{name}' saved.")
        return
    await agent.world.go_to(*pos, agent.context, closeness=1)


MODE_NAMES = tuple(name for name, _, _ in DEFAULT_MODES)

ACTION_COMMANDS = (
    CommandDef(
        name="!stop",
        description="Force stop all actions and commands that are currently executing.",
        kind=CommandKind.ACTION,
        perform=stop,
        managed=False,
    ),
    CommandDef(
        name="!stfu",
        description="Stop all chatting and self prompting, but continue current action.",
        kind=CommandKind.ACTION,
        perform=stfu,
        managed=False,
    ),
    CommandDef(
        name="!restart",
        description="Restart the agent process.",
        kind=CommandKind.ACTION,
        perform=restart,
        managed=False,
    ),
    CommandDef(
        name="!clearChat",
        description="Clear the chat history.",
        kind=CommandKind.ACTION,
        perform=clear_chat,
        managed=False,
    ),
    CommandDef(
        name="!goToPlayer",
        description="Go to the given player.",
        kind=CommandKind.ACTION,
        perform=go_to_player,
        params=(
            Param("player_name", ParamType.STRING, "The name of the player to go to."),
            Param("closeness", ParamType.FLOAT, "How close to get to the player.", domain=(0, INF)),
        ),
    ),
    CommandDef(
        name="!followPlayer",
        description="Endlessly follow the given player.",
        kind=CommandKind.ACTION,
        perform=follow_player,
        params=(
            Param("player_name", ParamType.STRING, "name of the player to follow."),
            Param("follow_dist", ParamType.FLOAT, "The distance to follow from.", domain=(0, INF)),
        ),
        resume=True,
    ),
    CommandDef(
        name="!goTo",
        description="Go to the given x, y, z location.",
        kind=CommandKind.ACTION,
        perform=go_to,
        params=(
            Param("x", ParamType.FLOAT, "The x coordinate."),
            Param("y", ParamType.FLOAT, "The y coordinate."),
            Param("z", ParamType.FLOAT, "The z coordinate."),
        ),
    ),
    CommandDef(
        name="!moveAway",
        description="Move away from the current location in any direction by a given distance.",
        kind=CommandKind.ACTION,
        perform=move_away,
        params=(Param("distance", ParamType.FLOAT, "The distance to move away.", domain=(0, INF)),),
    ),
    CommandDef(
        name="!rememberHere",
        description="Save the current location with a given name.",
        kind=CommandKind.ACTION,
        perform=remember_here,
        params=(Param("name", ParamType.STRING, "The name to remember the location as."),),
        managed=False,
    ),
    CommandDef(
        name="!goToPlace",
        description="Go to a saved location.",
        kind=CommandKind.ACTION,
        perform=go_to_place,
        params=(Param("name", ParamType.STRING, "The name of the location to go to."),),
    ),
    CommandDef(
        name="!givePlayer",
        description="Give the specified item to the given player.",
        kind=CommandKind.ACTION,
        perform=give_player,
        params=(
            Param("player_name", ParamType.STRING, "The name of the player to give the item to."),
            Param("item_name", ParamType.STRING, "The name of the item to give."),
            Param("num", ParamType.INT, "The number of items to give.", domain=(1, INF)),
        ),
    ),
    CommandDef(
        name="!collectBlocks",
        description="Collect the nearest blocks of a given type.",
        kind=CommandKind.ACTION,
        perform=collect_blocks,
        params=(
            Param("type", ParamType.STRING, "The block type to collect."),
            Param("num", ParamType.INT, "The number of blocks to collect.", domain=(1, INF)),
        ),
        timeout=10,
    ),
    CommandDef(
        name="!setMode",
        description=(
            "Set a mode to on or off. A mode is an automatic behavior that constantly checks "
            "and responds to the environment."
        ),
        kind=CommandKind.ACTION,
        perform=set_mode,
        params=(
            Param("mode_name", ParamType.ENUM, "The name of the mode to enable.", choices=MODE_NAMES),
            Param("on", ParamType.BOOLEAN, "Whether to enable or disable the mode."),
        ),
        managed=False,
    ),
    CommandDef(
        name="!goal",
        description="Set a goal prompt to endlessly work towards with continuous self-prompting.",
        kind=CommandKind.ACTION,
        perform=goal,
        params=(Param("selfPrompt", ParamType.STRING, "The goal prompt."),),
        managed=False,
    ),
    CommandDef(
        name="!endGoal",
        description=(
            "Call when you have accomplished your goal. It will stop self-prompting and the current action."
        ),
        kind=CommandKind.ACTION,
        perform=end_goal,
        managed=False,
    ),
)
