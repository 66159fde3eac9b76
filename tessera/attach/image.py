from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum, IntFlag
from typing import Tuple

import numpy as np
from numpy.typing import NDArray

from tessera.types import Extent3D


class TextureFormat(str, Enum):
    """Pixel formats an attachment can be declared with."""

    R8_UNORM = "r8unorm"
    RGBA8_UNORM = "rgba8unorm"
    R16_FLOAT = "r16float"
    RG16_FLOAT = "rg16float"
    RGBA16_FLOAT = "rgba16float"
    R32_FLOAT = "r32float"
    RGBA32_FLOAT = "rgba32float"
    DEPTH32_FLOAT = "depth32float"

    @property
    def components(self) -> int:
        return _FORMAT_LAYOUT[self][0]

    @property
    def gl_dtype(self) -> str:
        """ModernGL dtype string ("f1", "f2", "f4")."""
        return _FORMAT_LAYOUT[self][1]

    @property
    def np_dtype(self) -> np.dtype:
        return np.dtype(_FORMAT_LAYOUT[self][2])

    @property
    def is_depth(self) -> bool:
        return self is TextureFormat.DEPTH32_FLOAT


# components, moderngl dtype, numpy dtype
_FORMAT_LAYOUT = {
    TextureFormat.R8_UNORM: (1, "f1", "u1"),
    TextureFormat.RGBA8_UNORM: (4, "f1", "u1"),
    TextureFormat.R16_FLOAT: (1, "f2", "f2"),
    TextureFormat.RG16_FLOAT: (2, "f2", "f2"),
    TextureFormat.RGBA16_FLOAT: (4, "f2", "f2"),
    TextureFormat.R32_FLOAT: (1, "f4", "f4"),
    TextureFormat.RGBA32_FLOAT: (4, "f4", "f4"),
    TextureFormat.DEPTH32_FLOAT: (1, "f4", "f4"),
}


class TextureUsages(IntFlag):
    COPY_SRC = 1 << 0
    COPY_DST = 1 << 1
    TEXTURE_BINDING = 1 << 2
    STORAGE_BINDING = 1 << 3
    RENDER_ATTACHMENT = 1 << 4


class TextureAspect(str, Enum):
    ALL = "all"
    STENCIL_ONLY = "stencil-only"
    DEPTH_ONLY = "depth-only"


class TextureDimension(str, Enum):
    D1 = "1d"
    D2 = "2d"
    D3 = "3d"


class TextureViewDimension(str, Enum):
    D2 = "2d"
    D2_ARRAY = "2d-array"


class ColorWrites(IntFlag):
    RED = 1 << 0
    GREEN = 1 << 1
    BLUE = 1 << 2
    ALPHA = 1 << 3
    ALL = RED | GREEN | BLUE | ALPHA


@dataclass(frozen=True, slots=True)
class TextureDescriptor:
    size: Extent3D
    format: TextureFormat
    usage: TextureUsages
    label: str | None = None
    mip_level_count: int = 1
    sample_count: int = 1
    dimension: TextureDimension = TextureDimension.D2


@dataclass(frozen=True, slots=True)
class TextureViewDescriptor:
    format: TextureFormat
    dimension: TextureViewDimension
    usage: TextureUsages
    aspect: TextureAspect = TextureAspect.ALL
    label: str | None = None


@dataclass(frozen=True, slots=True)
class ColorTargetState:
    """What a render pipeline needs to know to write into an attachment."""

    format: TextureFormat
    write_mask: ColorWrites = ColorWrites.ALL
    blend: str | None = None


def data_shape(size: Extent3D, fmt: TextureFormat) -> Tuple[int, int, int, int]:
    """CPU layout of image content: (layers, height, width, components)."""
    return (size.depth_or_array_layers, size.height, size.width, fmt.components)


@dataclass(slots=True)
class Image:
    """
    An image owned by the ImageStore.

    ``data`` is the CPU-side content. ``None`` means the content only exists
    on the GPU (or nowhere yet), which is the normal state for render targets.
    """

    descriptor: TextureDescriptor
    view_descriptor: TextureViewDescriptor | None = None
    data: NDArray | None = field(default=None, repr=False)

    @property
    def size(self) -> Extent3D:
        return self.descriptor.size

    @property
    def format(self) -> TextureFormat:
        return self.descriptor.format

    def materialize(self) -> NDArray:
        """Returns the CPU content, zero-filling it first if there is none."""
        if self.data is None:
            self.data = np.zeros(
                data_shape(self.size, self.format), dtype=self.format.np_dtype
            )
        return self.data

    def set_size(self, size: Extent3D) -> None:
        """Changes the recorded size only. Content is not touched."""
        self.descriptor = replace(self.descriptor, size=size)
        if self.view_descriptor is not None:
            self.view_descriptor = replace(
                self.view_descriptor, dimension=view_dimension(size)
            )

    def resize_in_place(self, size: Extent3D) -> None:
        """
        Reallocates the content for ``size``, keeping the overlapping region.
        Texels outside the old bounds are zero.
        """
        if self.data is not None:
            resized = np.zeros(data_shape(size, self.format), dtype=self.data.dtype)
            layers, height, width = (
                min(a, b) for a, b in zip(self.data.shape[:3], resized.shape[:3])
            )
            resized[:layers, :height, :width] = self.data[:layers, :height, :width]
            self.data = resized

        self.set_size(size)


def view_dimension(size: Extent3D) -> TextureViewDimension:
    if size.depth_or_array_layers > 1:
        return TextureViewDimension.D2_ARRAY
    return TextureViewDimension.D2
