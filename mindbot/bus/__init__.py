from mindbot.bus.events import InboundMessage
from mindbot.bus.queue import MessageBus

__all__ = ["InboundMessage", "MessageBus"]
