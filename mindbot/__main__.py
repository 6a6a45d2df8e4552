"""Run one agent against the simulated world; stdin lines become chat from the console user."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path

from loguru import logger

from mindbot.agent.loop import AgentLoop
from mindbot.config import load_profile, load_settings
from mindbot.errors import AgentExit
from mindbot.providers import LiteLLMProvider
from mindbot.tasks import load_task
from mindbot.world import SimulatedWorld

CONSOLE_USER = "player"


def setup_logging(bots_dir: str, agent_name: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=os.getenv("MINDBOT_LOG_LEVEL", "INFO"))
    log_dir = Path(bots_dir) / agent_name / "logs"
    logger.add(log_dir / "mindbot_{time}.log", level="DEBUG", rotation="10 MB", retention=5)


async def _console(world: SimulatedWorld) -> None:
    while True:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            return
        line = line.strip()
        if line:
            world.receive_chat(CONSOLE_USER, line)


async def run_agent(args: argparse.Namespace) -> int:
    settings = load_settings(args.settings)
    profile = load_profile(args.profile)
    setup_logging(settings.bots_dir, profile.name)

    task = load_task(args.task, args.task_id) if args.task else None
    world = SimulatedWorld(profile.name, players={CONSOLE_USER: (5.0, 64.0, 5.0)})
    provider = LiteLLMProvider.from_config(profile.model)
    agent = AgentLoop(profile, settings, world, provider, task=task)

    console = asyncio.create_task(_console(world))
    try:
        await agent.start(load_mem=args.load_memory, init_message=args.init_message, count_id=args.count_id)
        await agent.run()
    finally:
        console.cancel()
        agent.stop()
        agent.memory_bank.close()
    return agent.exit_code or 0


def main() -> None:
    parser = argparse.ArgumentParser(prog="mindbot", description="Run a chat-driven world agent.")
    parser.add_argument("--profile", required=True, help="Path to the agent profile JSON")
    parser.add_argument("--settings", default=None, help="Path to a settings JSON file")
    parser.add_argument("--load-memory", action="store_true", help="Resume from bots/<name>/memory.json")
    parser.add_argument("--init-message", default=None, help="Message to start the agent with")
    parser.add_argument("--task", default=None, help="Path to a task file")
    parser.add_argument("--task-id", default=None, help="Task key when the file holds several tasks")
    parser.add_argument("--count-id", type=int, default=0, help="Index of this agent among several")
    args = parser.parse_args()

    try:
        code = asyncio.run(run_agent(args))
    except AgentExit as e:
        logger.info("Agent exited: {}", e.reason)
        code = e.code
    except KeyboardInterrupt:
        logger.info("Interrupted")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
