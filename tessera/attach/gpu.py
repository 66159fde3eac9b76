# tessera/attach/gpu.py
from __future__ import annotations

import logging
from typing import Dict, Union

import moderngl

from tessera.attach.image import Image
from tessera.attach.store import Handle, ImageStore
from tessera.types import ImageId

logger = logging.getLogger(__name__)

GPUTexture = Union[moderngl.Texture, moderngl.TextureArray]


def allocate_texture(ctx: moderngl.Context, image: Image) -> GPUTexture:
    """
    Allocate a texture matching an image's descriptor, uploading its CPU
    content when it has any.

    Raises:
        ValueError: If the image cannot be represented as a texture.
    """
    size, fmt = image.size, image.format
    if not size.is_valid():
        raise ValueError(f"Texture dimensions must be positive, got {tuple(size)}")

    data = image.data.tobytes() if image.data is not None else None

    if fmt.is_depth:
        if size.layers != 1:
            raise ValueError("Layered depth attachments are not supported")
        tex = ctx.depth_texture(size=size.size_2d, data=data)

    elif size.layers > 1:
        tex = ctx.texture_array(
            size=(size.width, size.height, size.layers),
            components=fmt.components,
            data=data,
            dtype=fmt.gl_dtype,
        )

    else:
        tex = ctx.texture(
            size=size.size_2d,
            components=fmt.components,
            data=data,
            dtype=fmt.gl_dtype,
        )

    tex.filter = (moderngl.NEAREST, moderngl.NEAREST)
    tex.repeat_x = False
    tex.repeat_y = False
    return tex


class GPUAttachmentSync:
    """
    Mirrors ImageStore images into VRAM.

    Call ``sync()`` once per frame after the resize cascades ran: images the
    store reports as changed get a fresh texture, removed ones are released.
    """

    def __init__(self, ctx: moderngl.Context, images: ImageStore):
        self.ctx = ctx
        self.images = images
        self._textures: Dict[ImageId, GPUTexture] = {}

    def sync(self) -> int:
        """Returns the number of textures (re)created."""
        changes = self.images.drain_changes()
        if not changes:
            return 0

        for image_id in changes.removed:
            self._release(image_id)

        uploaded = 0
        for image_id in sorted(changes.changed):
            image = self.images.get(Handle(image_id))
            if image is None:
                continue

            self._release(image_id)
            self._textures[image_id] = allocate_texture(self.ctx, image)
            uploaded += 1

        logger.debug(
            "GPU sync: %d uploaded, %d released", uploaded, len(changes.removed)
        )
        return uploaded

    def texture(self, handle: Handle) -> GPUTexture | None:
        return self._textures.get(handle.id)

    def _release(self, image_id: ImageId) -> None:
        tex = self._textures.pop(image_id, None)
        if tex is not None:
            tex.release()

    def release(self) -> None:
        for tex in self._textures.values():
            tex.release()
        self._textures.clear()

    def __len__(self) -> int:
        return len(self._textures)
