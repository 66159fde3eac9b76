from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, NewType, Tuple, overload

EntityId = NewType("EntityId", int)
ArchetypeMask = NewType("ArchetypeMask", int)
SystemId = NewType("SystemId", str)
ImageId = NewType("ImageId", int)

Size2D = Tuple[int, int]  # width, height


@dataclass(frozen=True, slots=True)
class Extent3D:
    """Width, height and depth (or array layer count) of an image."""

    width: int
    height: int
    depth_or_array_layers: int = 1

    @property
    def layers(self) -> int:
        return self.depth_or_array_layers

    @property
    def size_2d(self) -> Size2D:
        return (self.width, self.height)

    def is_valid(self) -> bool:
        return (
            self.width >= 1 and self.height >= 1 and self.depth_or_array_layers >= 1
        )

    def with_layers(self, layers: int) -> Extent3D:
        return Extent3D(self.width, self.height, layers)

    def __iter__(self) -> Iterator[int]:
        yield self.width
        yield self.height
        yield self.depth_or_array_layers

    def __len__(self) -> int:
        return 3

    @overload
    def __getitem__(self, index: int) -> int: ...
    @overload
    def __getitem__(self, index: slice) -> tuple[int, ...]: ...

    def __getitem__(self, index: Any):
        return tuple(self)[index]
