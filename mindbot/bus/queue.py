"""Async message queue between world event handlers and the turn loop."""

import asyncio

from mindbot.bus.events import InboundMessage


class MessageBus:
    """
    Inbound stimuli queue.

    World event handlers publish here instead of calling into the turn loop,
    and the loop consumes one message at a time.
    """

    def __init__(self):
        self.inbound: asyncio.Queue[InboundMessage] = asyncio.Queue()
        self._external_waiting = 0

    async def publish_inbound(self, msg: InboundMessage) -> None:
        if msg.external:
            self._external_waiting += 1
        await self.inbound.put(msg)

    async def consume_inbound(self) -> InboundMessage:
        msg = await self.inbound.get()
        if msg.external:
            self._external_waiting -= 1
        return msg

    @property
    def external_waiting(self) -> int:
        """External messages queued but not yet picked up."""
        return self._external_waiting

    @property
    def inbound_size(self) -> int:
        return self.inbound.qsize()
