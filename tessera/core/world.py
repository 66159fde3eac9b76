from __future__ import annotations

from typing import (
    Any,
    Dict,
    Iterator,
    List,
    Optional,
    Tuple,
    Type,
    TypeVar,
    TypeVarTuple,
    Unpack,
)

import numpy as np

from tessera.core.archetype import Archetype
from tessera.core.events import EventManager
from tessera.core.registry import ComponentRegistry
from tessera.core.resources import ResourceManager
from tessera.types import ArchetypeMask, EntityId

T = TypeVar("T")
Ev = TypeVar("Ev")
Cs = TypeVarTuple("Cs")  # variadic component types for join()


class EntityRecord:
    __slots__ = ("archetype", "row")

    def __init__(self, archetype: Archetype, row: int):
        self.archetype = archetype
        self.row = row


class World:
    def __init__(self) -> None:
        self._next_id: int = 1

        self._archetypes: Dict[int, Archetype] = {}
        self._entities: Dict[EntityId, EntityRecord] = {}

        self._resource_manager = ResourceManager()
        self._event_manager = EventManager()

        # The "Empty" archetype (Mask 0)
        self._get_or_create_archetype(ArchetypeMask(0), [])

    # RESOURCE MANAGEMENT
    def add_resource(self, resource: Any) -> None:
        """Register a global resource (ImageStore, AttachmentSettings, ...)."""
        self._resource_manager.add(resource)

    def get_resource(self, resource_type: Type[T]) -> T:
        """Retrieve a resource. Raises KeyError if missing."""
        return self._resource_manager.get(resource_type)

    def try_resource(self, resource_type: Type[T]) -> T | None:
        """Retrieve a resource or returns None."""
        return self._resource_manager.try_get(resource_type)

    def remove_resource(self, resource_type: Type[Any]) -> None:
        self._resource_manager.remove(resource_type)

    # EVENT MANAGEMENT
    def emit_event(self, event: Any) -> None:
        """Queues an event signal."""
        self._event_manager.emit(event)

    def get_events(self, event_type: Type[Ev]) -> List[Ev]:
        """Consumes and returns all events of the given type."""
        return self._event_manager.get(event_type)

    # ENTITY MANAGEMENT
    def create_entity(self, *components: Any) -> EntityId:
        """Creates an entity, optionally with starting components."""
        eid = EntityId(self._next_id)
        self._next_id += 1

        arch = self._archetypes[ArchetypeMask(0)]
        row = arch.add(eid, {})
        self._entities[eid] = EntityRecord(arch, row)

        for c in components:
            self.add_component(eid, c)

        return eid

    def delete_entity(self, eid: EntityId) -> None:
        if eid not in self._entities:
            return

        record = self._entities[eid]
        moved_eid = record.archetype.remove(record.row)

        if moved_eid != -1:
            self._entities[moved_eid].row = record.row

        del self._entities[eid]

    # COMPONENT MANAGEMENT
    def add_component(self, eid: EntityId, component: object) -> None:
        record = self._entities[eid]
        old_arch = record.archetype
        comp_mask = ComponentRegistry.get_mask(type(component))

        if old_arch.mask & comp_mask:
            self.mutate_component(eid, component)
            return

        new_mask = ArchetypeMask(old_arch.mask | comp_mask)
        self._move_entity(eid, record, new_mask, add_component=component)

    def remove_component(self, eid: EntityId, component_type: Type[Any]) -> None:
        record = self._entities.get(eid)
        if not record:
            return

        old_arch = record.archetype
        comp_mask = ComponentRegistry.get_mask(component_type)

        if not (old_arch.mask & comp_mask):
            return

        new_mask = ArchetypeMask(old_arch.mask & ~comp_mask)
        self._move_entity(eid, record, new_mask, remove_type=component_type)

    def mutate_component(self, eid: EntityId, component: Any) -> None:
        """
        Update an EXISTING component with a new instance.
        """
        record = self._entities.get(eid)
        if not record:
            raise KeyError(f"Entity {eid} does not exist.")

        comp_type = type(component)
        arch = record.archetype

        if comp_type not in arch.arrays and comp_type not in arch.objects:
            raise KeyError(
                f"Entity {eid} cannot mutate {comp_type.__name__}: Component missing. "
                "Use world.add_component() to attach new components."
            )

        arch.write(record.row, component)

    def component(self, eid: EntityId, component_type: Type[T]) -> Optional[T]:
        record = self._entities.get(eid)
        if not record:
            return None

        arch = record.archetype

        if component_type in arch.arrays:
            raw_data = arch.arrays[component_type][record.row]
            return self._reconstruct_component(component_type, raw_data)

        if component_type in arch.objects:
            return arch.objects[component_type][record.row]

        return None

    def has(self, eid: EntityId, component_type: Type[Any]) -> bool:
        record = self._entities.get(eid)
        if not record:
            return False
        mask = ComponentRegistry.get_mask(component_type)
        return bool(record.archetype.mask & mask)

    # QUERIES
    def join(
        self,
        *component_types: Unpack[Tuple[Type[Cs], ...]],
    ) -> Iterator[Tuple[EntityId, *Cs]]:
        """
        Yields (eid, *components) for every entity owning all component_types.
        Object components are yielded by reference; SoA components are rebuilt.
        """
        query_mask = 0
        for t in component_types:
            query_mask |= ComponentRegistry.get_mask(t)

        for arch in list(self._archetypes.values()):
            if (arch.mask & query_mask) != query_mask:
                continue

            for i, eid in enumerate(list(arch.entities)):
                components = []
                for t in component_types:
                    if t in arch.arrays:
                        components.append(
                            self._reconstruct_component(t, arch.arrays[t][i])
                        )
                    else:
                        components.append(arch.objects[t][i])

                yield (eid, *components)

    # INTERNAL HELPERS
    def _get_or_create_archetype(
        self, mask: ArchetypeMask, types: List[Type[Any]]
    ) -> Archetype:
        if mask not in self._archetypes:
            self._archetypes[mask] = Archetype(mask, types)
        return self._archetypes[mask]

    def _move_entity(
        self,
        eid: EntityId,
        record: EntityRecord,
        new_mask: ArchetypeMask,
        add_component: Any = None,
        remove_type: Type[Any] | None = None,
    ) -> None:
        """Handles the logic of moving an entity between tables"""
        old_arch = record.archetype

        # 1. Collect data for the new archetype
        data = {}
        for t in old_arch.types:
            if t != remove_type:
                if t in old_arch.arrays:
                    raw = old_arch.arrays[t][record.row]
                    data[t] = self._reconstruct_component(t, raw)
                else:
                    data[t] = old_arch.objects[t][record.row]

        if add_component is not None:
            data[type(add_component)] = add_component

        # 2. Get new archetype
        new_arch = self._get_or_create_archetype(new_mask, list(data.keys()))

        # 3. Remove from old
        moved_eid = old_arch.remove(record.row)
        if moved_eid != -1:
            self._entities[moved_eid].row = record.row

        # 4. Add to new
        new_row = new_arch.add(eid, data)
        self._entities[eid] = EntityRecord(new_arch, new_row)

    def _reconstruct_component(self, comp_type: Type[T], raw_data: Any) -> T:
        """
        Re-inflates a dataclass component from a numpy void record.
        """
        kwargs = {}
        for field_def in comp_type.__soa_dtype__:
            name = field_def[0]
            val = raw_data[name]
            shape = field_def[2] if len(field_def) > 2 else ()

            if shape == (1,):
                val = val[0]
            if isinstance(val, np.generic):
                val = val.item()

            kwargs[name] = val

        return comp_type(**kwargs)
