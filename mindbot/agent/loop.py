"""Agent loop: the turn-taking control loop."""

from __future__ import annotations

import asyncio
import random
import time
from typing import Coroutine

from loguru import logger

from mindbot.agent.actions import ActionManager
from mindbot.agent.commands import CommandRegistry, build_registry
from mindbot.agent.commands.base import command_start
from mindbot.agent.context import AgentContext
from mindbot.agent.history import SYSTEM, History
from mindbot.agent.memory_bank import MemoryBank
from mindbot.agent.modes import ModeController
from mindbot.agent.prompter import Prompter
from mindbot.agent.self_prompter import SelfPrompter
from mindbot.bus.events import InboundMessage
from mindbot.bus.queue import MessageBus
from mindbot.config.loader import save_last_profile
from mindbot.config.schema import Profile, Settings
from mindbot.errors import AgentExit
from mindbot.providers.base import LLMProvider
from mindbot.storage.database import default_database_url
from mindbot.tasks import Task, make_validator
from mindbot.world.base import World

# server feedback that is not conversation
IGNORE_MESSAGES = (
    "Set own game mode to",
    "Set the time to",
    "Set the difficulty to",
    "Teleported ",
    "Set the weather to",
    "Gamerule ",
)


class AgentLoop:
    """
    The agent loop is the core processing engine.

    It:
    1. Receives stimuli from the bus (chat, whispers, world notices)
    2. Checks user messages for direct commands
    3. Queries the model with the conversation history
    4. Executes the command in the response, feeding its result back
    5. Speaks plain replies and stops

    Turns are serialized by a lock. The self-prompter drives the same entry
    point with its own goal and yields whenever external input is waiting.
    """

    def __init__(
        self,
        profile: Profile,
        settings: Settings,
        world: World,
        provider: LLMProvider,
        bus: MessageBus | None = None,
        task: Task | None = None,
        memory_bank: MemoryBank | None = None,
    ):
        self.profile = profile
        self.name = profile.name
        self.settings = settings
        self.world = world
        self.provider = provider
        self.bus = bus or MessageBus()

        self.context = AgentContext(name=self.name)
        self.commands: CommandRegistry = build_registry()
        self.prompter = Prompter(self, profile, provider)
        self.history = History(
            self.name,
            settings.bots_dir,
            summarize=self.prompter.prompt_mem_saving,
            max_chars=settings.history_max_chars,
            memory_max_chars=settings.memory_max_chars,
        )
        self.actions = ActionManager(self)
        self.modes = ModeController(self, profile.modes)
        self.self_prompter = SelfPrompter(
            self, cooldown=settings.self_prompt_cooldown, max_no_command=settings.max_no_command
        )
        self.memory_bank = memory_bank or MemoryBank(
            self.name, settings.database_url or default_database_url(settings.bots_dir, self.name)
        )

        self.task = task
        self.validator = make_validator(task, world)
        self.blocked_actions: list[str] = task.blocked_actions_for(self.name) if task else []
        if self.blocked_actions:
            logger.info("Blocked actions for {}: {}", self.name, self.blocked_actions)

        self.exit_code: int | None = None
        self._running = False
        self._turn_lock = asyncio.Lock()
        # external messages taken off the bus but still waiting for the turn lock
        self._external_waiting = 0
        self._tasks: set[asyncio.Task] = set()
        self._tick_task: asyncio.Task | None = None
        self._prev_health: float | None = None

    # -- lifecycle -------------------------------------------------------

    async def start(self, load_mem: bool = False, init_message: str | None = None, count_id: int = 0) -> None:
        """Connect to the world, set up the spawn, and resume or greet."""
        save_last_profile(self.profile, self.settings.bots_dir)
        save_data = self.history.load() if load_mem else None
        if save_data and save_data.get("modes"):
            self.modes.load_json(save_data["modes"])

        spawned = asyncio.Event()
        self.world.once("spawn", spawned.set)
        logger.info("Logging in {} (agent #{})...", self.name, count_id)
        await self.world.connect()
        await spawned.wait()
        await self._on_spawn(save_data, init_message)

    async def _on_spawn(self, save_data: dict | None, init_message: str | None) -> None:
        delay = self.settings.spawn_delay
        # stats are not ready right away
        await asyncio.sleep(delay)
        logger.info("{} spawned.", self.name)
        self.clear_bot_logs()

        self.world.chat(f"/clear {self.name}")
        await asyncio.sleep(delay / 2)

        if self.task:
            await self._setup_task_spawn()

        self.world.on("whisper", self._on_chat)
        if not self.settings.peer_agents:
            self.world.on("chat", self._on_chat)

        if save_data and save_data.get("self_prompt"):
            prompt = save_data["self_prompt"]
            await self.history.add(SYSTEM, prompt)
            self.self_prompter.start(prompt)
        elif init_message:
            self.spawn(self.handle_message(SYSTEM, init_message, 2))
        else:
            self.world.chat(f"Hello world! I am {self.name}")

        self.start_events()

    async def _setup_task_spawn(self) -> None:
        task = self.task
        delay = self.settings.spawn_delay
        inventory = task.initial_inventory_for(self.name)
        if inventory:
            logger.info("Setting inventory for {}: {}", self.name, inventory)
            for item, count in inventory.items():
                self.world.chat(f"/give {self.name} {item} {count}")
            await asyncio.sleep(delay / 2)

        if task.is_multi_agent:
            humans = [p for p in self.world.players() if p != self.name and p not in task.agent_names]
            if humans:
                logger.info("Teleporting {} to human player {}", self.name, humans[0])
                self.world.chat(f"/tp {self.name} {humans[0]}")
            else:
                for other in task.agent_names:
                    if other != self.name:
                        self.world.chat(f"/tp {self.name} {other}")
            await asyncio.sleep(delay / 2)

        # construction tasks need the exact reference point
        if task.type != "construction":
            x, y, z = self.world.position()
            dx, dz = random.randint(-5, 5), random.randint(-5, 5)
            self.world.chat(f"/tp {self.name} {int(x + dx)} {y + 3} {int(z + dz)}")

    def start_events(self) -> None:
        self._prev_health = self.world.health
        self.world.on("health", self._on_health)
        self.world.on("end", self._on_end)
        self.world.on("kicked", self._on_kicked)
        self.world.on("death", self._on_death)
        self.world.on("idle", self._on_idle)

        self._running = True
        self._tick_task = asyncio.create_task(self._tick_loop())
        self.world.emit("idle")

    async def run(self) -> None:
        """Consume stimuli from the bus until stopped."""
        self._running = True
        logger.info("Agent loop started for {}", self.name)
        while self._running:
            try:
                msg = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            if msg.external:
                self._external_waiting += 1
            self.spawn(self.handle_message(msg.source, msg.content, msg.max_turns, queued=msg.external))

    def stop(self) -> None:
        """Stop the agent loop."""
        self._running = False
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None
        logger.info("Agent loop stopping")

    def spawn(self, coro: Coroutine) -> asyncio.Task:
        """Run a coroutine in the background, keeping a reference until it finishes."""
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed: {}", task.exception())

    async def _tick_loop(self) -> None:
        # each update finishes before the next one is scheduled
        interval = self.settings.tick_interval
        last = time.monotonic()
        while self._running:
            start = time.monotonic()
            try:
                await self.update(start - last)
            except Exception as e:
                logger.error("Tick failed: {}", e)
            remaining = interval - (time.monotonic() - start)
            if remaining > 0:
                await asyncio.sleep(remaining)
            last = start

    async def update(self, delta: float) -> None:
        await self.modes.update()
        await self.self_prompter.update(delta)

    # -- world events ----------------------------------------------------

    async def _on_chat(self, username: str, message: str) -> None:
        if username == self.name:
            return
        if any(message.startswith(m) for m in IGNORE_MESSAGES):
            return
        self.context.shut_up = False
        logger.info("{} received message from {}: {}", self.name, username, message)
        await self.bus.publish_inbound(InboundMessage(source=username, content=message, external=True))

    def _on_health(self) -> None:
        health = self.world.health
        if self._prev_health is not None and health < self._prev_health:
            self.context.record_damage(self._prev_health - health)
        self._prev_health = health

    def _on_end(self, reason: str = "") -> None:
        logger.warning("Bot disconnected! Killing agent process. {}", reason)
        self.clean_kill("Bot disconnected! Killing agent process.")

    def _on_kicked(self, reason: str = "") -> None:
        logger.warning("Bot kicked! {}", reason)
        self.clean_kill("Bot kicked! Killing agent process.")

    def _on_death(self) -> None:
        x, y, z = self.world.position()
        self.memory_bank.remember_place("last_death_position", x, y, z)
        self.actions.cancel_resume()
        self.spawn(self.actions.stop())
        message = (
            f"You died at position x: {x:.2f}, y: {y:.2f}, z: {z:.2f} in the {self.world.dimension} "
            f"dimension. Your place of death is saved as 'last_death_position' if you want to return. "
            f"Previous actions were stopped and you have respawned."
        )
        logger.info("{} died at {}, {}, {}", self.name, x, y, z)
        self.spawn(self.bus.publish_inbound(InboundMessage(source=SYSTEM, content=message)))

    def _on_idle(self) -> None:
        if self._task_complete():
            self.kill_bots()
        self.world.clear_control_states()
        self.modes.unpause_all()
        self.spawn(self.actions.resume_action())

    # -- turns -----------------------------------------------------------

    def is_peer(self, name: str) -> bool:
        return name in self.settings.peer_agents

    def external_pending(self) -> bool:
        """Whether an external message is queued or waiting for its turn."""
        return self.bus.external_waiting + self._external_waiting > 0

    async def handle_message(
        self,
        source: str,
        message: str,
        max_turns: int | None = None,
        queued: bool = False,
    ) -> bool:
        """
        Process one stimulus.

        Args:
            source: Who said it: a user, a peer agent, the agent itself or "system".
            message: The text.
            max_turns: Model turns allowed; None means `settings.max_commands`, -1 unbounded.
            queued: The caller already counted this message as pending external input.

        Returns:
            Whether any command was executed.
        """
        if self._task_complete():
            self.kill_bots()

        is_self_prompt = source == SYSTEM or source == self.name
        from_peer = self.is_peer(source)

        waiting = queued or not is_self_prompt
        if waiting and not queued:
            self._external_waiting += 1
        try:
            if not is_self_prompt and not from_peer:
                command_name = self.commands.contains_command(message)
                if command_name:
                    self._external_waiting -= 1
                    waiting = False
                    return await self._run_user_command(source, message, command_name)
            await self._turn_lock.acquire()
        finally:
            if waiting:
                self._external_waiting -= 1

        try:
            return await self._process_turns(source, message, max_turns, is_self_prompt)
        finally:
            self._turn_lock.release()

    async def _run_user_command(self, source: str, message: str, command_name: str) -> bool:
        if not self.commands.exists(command_name):
            self.world.chat(f"Command '{command_name}' does not exist.")
            return False
        self.world.chat(f"*{source} used {command_name[1:]}*")
        result = await self.commands.execute(self, message)
        if result:
            await self.clean_chat(source, result)
            await self.history.add(SYSTEM, result)
            self._save_history()
        return True

    async def _process_turns(self, source: str, message: str, max_turns: int | None,
                             is_self_prompt: bool) -> bool:
        if max_turns is None:
            max_turns = self.settings.max_commands
        if not is_self_prompt and self.self_prompter.on:
            # answer the user once, then let self-prompting take over
            max_turns = 1

        def check_interrupt() -> bool:
            return self.self_prompter.should_interrupt(is_self_prompt) or self.context.shut_up

        behavior_log = self.modes.flush_behavior_log()
        if behavior_log.strip():
            max_log = self.settings.behavior_log_max
            if len(behavior_log) > max_log:
                behavior_log = "..." + behavior_log[-max_log:]
            await self.history.add(SYSTEM, "Recent behaviors log: \n" + behavior_log)

        await self.history.add(source, message)
        self._save_history()

        used_command = False
        hallucinations = 0
        i = 0
        while max_turns < 0 or i < max_turns:
            i += 1
            if self._task_complete():
                self.kill_bots()
            if check_interrupt():
                break

            res = await self.prompter.prompt_convo(self.history.get_history())
            command_name = self.commands.contains_command(res)

            if command_name:
                logger.debug('Full response: ""{}""', res)
                res = self.commands.truncate(res)
                await self.history.add(self.name, res)

                if not self.commands.exists(command_name):
                    await self.history.add(SYSTEM, f"Command {command_name} does not exist.")
                    logger.warning("Agent hallucinated command: {}", command_name)
                    hallucinations += 1
                    self._save_history()
                    if hallucinations >= self.settings.max_hallucinations:
                        logger.warning("Too many hallucinated commands, giving up on this message")
                        break
                    continue
                hallucinations = 0

                if check_interrupt():
                    break
                self.self_prompter.handle_user_prompted_cmd(is_self_prompt, self.commands.is_action(command_name))
                await self._announce(source, res, command_name)

                execute_res = await self.commands.execute(self, res)
                logger.info("Agent executed: {} and got: {}", command_name, execute_res)
                used_command = True

                if execute_res:
                    await self.history.add(SYSTEM, execute_res)
                else:
                    break
            else:
                await self.history.add(self.name, res)
                await self.clean_chat(source, res)
                logger.info("Purely conversational response: {}", res)
                break

            self._save_history()

        self._save_history()
        return used_command

    async def _announce(self, source: str, res: str, command_name: str) -> None:
        if self.settings.verbose_commands:
            await self.clean_chat(source, res)
            return
        pre_message = res[: max(command_start(res), 0)].strip()
        pre_message = pre_message.rstrip("`").strip()
        chat_message = f"*used {command_name[1:]}*"
        if pre_message:
            chat_message = f"{pre_message}  {chat_message}"
        await self.clean_chat(source, chat_message)

    async def clean_chat(self, to_player: str, message: str) -> None:
        """Speak to a player: whispers for users, public chat for system turns and peers."""
        # newlines become separate chat lines and trip spam filters
        message = message.replace("\n", " ").strip()
        if not message:
            return
        if to_player in (SYSTEM, self.name) or self.is_peer(to_player):
            self.world.chat(message)
        else:
            self.world.whisper(to_player, message)

    def open_chat(self, message: str) -> None:
        self.world.chat(message.replace("\n", " "))

    # -- flags -----------------------------------------------------------

    def request_interrupt(self) -> None:
        self.context.interrupt_code = True
        self.world.clear_control_states()

    def clear_bot_logs(self) -> None:
        self.context.clear_logs()

    def shut_up(self) -> None:
        self.context.shut_up = True
        if self.self_prompter.on:
            self.self_prompter.request_stop(graceful=True)

    def is_idle(self) -> bool:
        return not self.actions.executing

    # -- termination -----------------------------------------------------

    def _task_complete(self) -> bool:
        return self.validator is not None and self.validator.validate()

    def kill_bots(self) -> None:
        """Announce task completion, clear the world, kick the other agents and exit 0."""
        logger.info("Task completed!")
        self.world.chat("Task completed!")
        self.world.chat("/clear @p")

        others = set(self.settings.peer_agents)
        if self.task:
            others.update(self.task.agent_names)
        others.discard(self.name)
        for name in sorted(others):
            logger.info("Kicking {}", name)
            self.world.chat(f"/kick {name}")

        self.clean_kill("task completed", 0)

    def clean_kill(self, msg: str = "Killing agent process...", code: int = 1) -> None:
        """Record why, save, and stop the process with `code`."""
        self.history.record(SYSTEM, msg)
        self.world.chat("Restarting.")
        self._save_history()
        self.exit_code = code
        logger.warning("Exiting {} with code {}: {}", self.name, code, msg)
        raise AgentExit(code, msg)

    def _save_history(self) -> None:
        self_prompt = self.self_prompter.prompt if self.self_prompter.on else None
        self.history.save(self_prompt=self_prompt, modes=self.modes.get_json())
