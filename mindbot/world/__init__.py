from mindbot.world.base import Position, World
from mindbot.world.sim import SimulatedWorld

__all__ = ["Position", "SimulatedWorld", "World"]
