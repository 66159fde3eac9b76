from collections import defaultdict
from typing import Any, Dict, List, Type, TypeVar

E = TypeVar("E")


class EventManager:
    """Per-type event queues. Reading a type drains its queue."""

    def __init__(self):
        self._queues: Dict[Type[Any], List[Any]] = defaultdict(list)

    def emit(self, event: Any) -> None:
        self._queues[type(event)].append(event)

    def get(self, event_type: Type[E]) -> List[E]:
        return self._queues.pop(event_type, [])
