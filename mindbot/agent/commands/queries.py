"""Query commands: instant reads of the agent's situation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from mindbot.agent.commands.base import CommandDef, CommandKind

if TYPE_CHECKING:
    from mindbot.agent.loop import AgentLoop


def _split_players(agent: AgentLoop, names: list[str]) -> tuple[list[str], list[str]]:
    humans, bots = [], []
    for name in names:
        if name == agent.name:
            continue
        (bots if name in agent.settings.peer_agents else humans).append(name)
    return humans, bots


async def stats(agent: AgentLoop) -> str:
    world = agent.world
    x, y, z = world.position()
    res = "STATS"
    res += f"\n- Position: x: {x:.2f}, y: {y:.2f}, z: {z:.2f}"
    res += f"\n- Health: {round(world.health)} / 20"
    res += f"\n- Hunger: {round(world.food)} / 20"
    res += f"\n- Dimension: {world.dimension}"
    action = agent.actions.current_action_label or "Idle"
    res += f"\n- Current Action: {action}"

    humans, bots = _split_players(agent, world.players())
    res += "\n- Nearby Human Players: " + (", ".join(humans) if humans else "None.")
    res += "\n- Nearby Bot Players: " + (", ".join(bots) if bots else "None.")
    res += "\n" + agent.modes.get_mini_docs() + "\n"
    return res


async def inventory(agent: AgentLoop) -> str:
    items = agent.world.inventory()
    res = "INVENTORY"
    for name, count in items.items():
        res += f"\n- {name}: {count}"
    if not items:
        res += ": Nothing"
    return res


async def nearby_blocks(agent: AgentLoop) -> str:
    blocks = agent.world.nearby_blocks()
    res = "NEARBY_BLOCKS"
    for block in blocks:
        res += f"\n- {block}"
    if not blocks:
        res += ": none"
    return res


async def entities(agent: AgentLoop) -> str:
    names = agent.world.nearby_entities()
    players = set(agent.world.players())
    humans, bots = _split_players(agent, [n for n in names if n in players])
    res = "NEARBY_ENTITIES"
    for name in humans:
        res += f"\n- Human player: {name}"
    for name in bots:
        res += f"\n- Bot player: {name}"
    for name in names:
        if name not in players:
            res += f"\n- entities: {name}"
    if res == "NEARBY_ENTITIES":
        res += ": none"
    return res


async def saved_places(agent: AgentLoop) -> str:
    return "Saved place names: " + ", ".join(agent.memory_bank.get_keys())


async def modes(agent: AgentLoop) -> str:
    return agent.modes.get_docs()


async def help_docs(agent: AgentLoop) -> str:
    return agent.commands.get_docs(agent.blocked_actions)


QUERY_COMMANDS = (
    CommandDef(
        name="!stats",
        description="Get your bot's location, health, hunger, and current action.",
        kind=CommandKind.QUERY,
        perform=stats,
    ),
    CommandDef(
        name="!inventory",
        description="Get your bot's inventory.",
        kind=CommandKind.QUERY,
        perform=inventory,
    ),
    CommandDef(
        name="!nearbyBlocks",
        description="Get the blocks near the bot.",
        kind=CommandKind.QUERY,
        perform=nearby_blocks,
    ),
    CommandDef(
        name="!entities",
        description="Get the nearby players and entities.",
        kind=CommandKind.QUERY,
        perform=entities,
    ),
    CommandDef(
        name="!savedPlaces",
        description="List all saved locations.",
        kind=CommandKind.QUERY,
        perform=saved_places,
    ),
    CommandDef(
        name="!modes",
        description="Get all available modes and their docs and see which are on/off.",
        kind=CommandKind.QUERY,
        perform=modes,
    ),
    CommandDef(
        name="!help",
        description="Lists all available commands and their descriptions.",
        kind=CommandKind.QUERY,
        perform=help_docs,
    ),
)
