from typing import Any, Dict, List, Type

import numpy as np

from tessera.types import ArchetypeMask, EntityId


def _soa_row(comp_type: Type[Any], component: Any) -> tuple:
    """Flattens a component into a numpy record row following its __soa_dtype__."""
    values = []
    for field_def in comp_type.__soa_dtype__:
        val = getattr(component, field_def[0])
        if hasattr(val, "__iter__") and not isinstance(
            val, (str, bytes, list, tuple, np.ndarray)
        ):
            val = tuple(val)
        values.append(val)
    return tuple(values)


class Archetype:
    """
    Column storage for every entity sharing one exact component set.

    Plain-data components that declare ``__soa_dtype__`` live in numpy record
    arrays; everything else (attachments, handles) stays as Python objects so
    that in-place mutation is visible to later queries.
    """

    def __init__(self, mask: ArchetypeMask, types: List[Type[Any]]):
        self.mask = mask
        self.types = types
        self.entities: List[EntityId] = []

        self.arrays: Dict[Type[Any], np.ndarray] = {}
        self.objects: Dict[Type[Any], List[Any]] = {}
        self.capacity = 64
        self.count = 0

        for t in types:
            if hasattr(t, "__soa_dtype__"):
                self.arrays[t] = np.zeros(self.capacity, dtype=t.__soa_dtype__)
            else:
                self.objects[t] = []

    def add(self, eid: EntityId, comp_data: Dict[Type[Any], Any]) -> int:
        """Appends a new entity and its data to the columns."""
        idx = self.count

        if idx >= self.capacity:
            self._grow(self.capacity * 2)

        self.entities.append(eid)

        for t in self.types:
            if t in self.arrays:
                self.arrays[t][idx] = _soa_row(t, comp_data[t])
            else:
                self.objects[t].append(comp_data[t])

        self.count += 1
        return idx

    def write(self, row: int, component: Any) -> None:
        comp_type = type(component)
        if comp_type in self.arrays:
            self.arrays[comp_type][row] = _soa_row(comp_type, component)
        else:
            self.objects[comp_type][row] = component

    def _grow(self, new_cap: int) -> None:
        self.capacity = new_cap
        for t, old_arr in self.arrays.items():
            self.arrays[t] = np.zeros(new_cap, dtype=old_arr.dtype)
            self.arrays[t][: self.count] = old_arr[: self.count]

    def remove(self, row_idx: int) -> EntityId:
        """
        Removes an entity via swap-and-pop to keep the columns contiguous.
        Returns the EntityId that was moved into the gap, or -1.
        """
        last_idx = self.count - 1
        moved_entity = self.entities[last_idx]

        if row_idx == last_idx:
            self.entities.pop()
            for col in self.objects.values():
                col.pop()
            self.count -= 1
            return EntityId(-1)

        self.entities[row_idx] = moved_entity
        self.entities.pop()

        for col in self.objects.values():
            col[row_idx] = col[-1]
            col.pop()

        for arr in self.arrays.values():
            arr[row_idx] = arr[last_idx]

        self.count -= 1
        return moved_entity
