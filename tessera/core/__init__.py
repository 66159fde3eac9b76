from tessera.core.scheduler import Scheduler, Stage, SystemFn
from tessera.core.world import World

__all__ = [
    "Scheduler",
    "Stage",
    "SystemFn",
    "World",
]
