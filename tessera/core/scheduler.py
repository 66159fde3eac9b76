from __future__ import annotations

from enum import Enum, auto
from graphlib import CycleError, TopologicalSorter
from typing import Callable, Dict, List, Union

from tessera.core.world import World
from tessera.types import SystemId


class Stage(Enum):
    STARTUP = auto()  # Run once on scene start
    UPDATE = auto()  # Scene logic, camera/viewport changes
    POST_UPDATE = auto()  # Attachment resize cascades
    RENDER = auto()  # Consumers read finalized attachment handles


SystemFn = Callable[[World], None]


class Scheduler:
    def __init__(self):
        self._registered_systems = []

        self._execution_order: Dict[Stage, List[SystemFn]] = {s: [] for s in Stage}
        self._is_compiled = False

    def add_system(
        self,
        stage: Stage,
        system: SystemFn,
        name: Union[SystemId, None] = None,
        before: Union[SystemId, List[SystemId], None] = None,
        after: Union[SystemId, List[SystemId], None] = None,
    ) -> None:
        """Register a simple function as a system."""
        if self._is_compiled:
            raise RuntimeError("Cannot add systems after scheduler is compiled.")

        sys_name = name or SystemId(getattr(system, "__name__"))
        if any(entry["name"] == sys_name for entry in self._registered_systems):
            raise ValueError(f"System '{sys_name}' is already registered.")

        before_deps = [before] if isinstance(before, str) else (before or [])
        after_deps = [after] if isinstance(after, str) else (after or [])

        self._registered_systems.append(
            {
                "stage": stage,
                "func": system,
                "name": sys_name,
                "before": before_deps,
                "after": after_deps,
            }
        )

    def compile(self) -> None:
        by_stage = {s: [] for s in Stage}
        for entry in self._registered_systems:
            by_stage[entry["stage"]].append(entry)

        for stage, entries in by_stage.items():
            sorter = TopologicalSorter()
            name_map = {}

            for entry in entries:
                name_map[entry["name"]] = entry["func"]
                sorter.add(entry["name"], *entry["after"])

            for entry in entries:
                for successor in entry["before"]:
                    sorter.add(successor, entry["name"])

            try:
                sorted_names = list(sorter.static_order())
            except CycleError as e:
                raise RuntimeError(
                    f"Cycle detected in stage {stage.name}: {e.args[1]}"
                ) from e

            self._execution_order[stage] = [
                name_map[name] for name in sorted_names if name in name_map
            ]

        self._is_compiled = True

    def run_stage(self, stage: Stage, world: World) -> None:
        if not self._is_compiled:
            self.compile()

        for system in self._execution_order[stage]:
            system(world)

    def tick(self, world: World) -> None:
        """Runs every per-frame stage in order (STARTUP excluded)."""
        for stage in (Stage.UPDATE, Stage.POST_UPDATE, Stage.RENDER):
            self.run_stage(stage, world)

    def clear(self):
        self._registered_systems.clear()
        for stage in Stage:
            self._execution_order[stage].clear()

        self._is_compiled = False
