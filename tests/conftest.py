from dataclasses import dataclass

import pytest

from tessera.attach import (
    AttachmentSlot,
    CompositeAttachment,
    ImageStore,
    TextureAspect,
    TextureFormat,
    TextureUsages,
)
from tessera.core.world import World

USAGES = (
    TextureUsages.RENDER_ATTACHMENT
    | TextureUsages.TEXTURE_BINDING
    | TextureUsages.COPY_SRC
    | TextureUsages.COPY_DST
)


@dataclass(frozen=True)
class Position:
    x: float
    y: float


@dataclass(frozen=True)
class Velocity:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    __soa_dtype__ = [("w", "i4"), ("h", "i4")]

    w: int
    h: int


class Canvas(CompositeAttachment, length=1):
    """Single persistent paint target."""

    paint = AttachmentSlot(
        0, TextureFormat.RGBA32_FLOAT, USAGES, copy_on_resize=True, label="canvas"
    )


class GBuffer(CompositeAttachment, length=3):
    albedo = AttachmentSlot(0, TextureFormat.RGBA8_UNORM, USAGES)
    normal = AttachmentSlot(1, TextureFormat.RGBA16_FLOAT, USAGES, copy_on_resize=True)
    depth = AttachmentSlot(
        2,
        TextureFormat.DEPTH32_FLOAT,
        TextureUsages.RENDER_ATTACHMENT,
        aspect=TextureAspect.DEPTH_ONLY,
    )


@pytest.fixture
def world():
    """Returns a fresh World instance for each test."""
    return World()


@pytest.fixture
def images():
    return ImageStore()
