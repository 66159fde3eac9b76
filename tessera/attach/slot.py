from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, NamedTuple, overload

from tessera.attach.image import (
    ColorTargetState,
    ColorWrites,
    Image,
    TextureAspect,
    TextureDescriptor,
    TextureFormat,
    TextureUsages,
    TextureViewDescriptor,
    view_dimension,
)
from tessera.attach.settings import DiscardPolicy
from tessera.attach.store import Handle, ImageStore
from tessera.types import Extent3D

if TYPE_CHECKING:
    from tessera.attach.composite import CompositeAttachment

logger = logging.getLogger(__name__)

ExtentFn = Callable[[Extent3D], Extent3D]


class AttachmentParams(NamedTuple):
    """The context threaded through every slot of a resize cascade."""

    images: ImageStore
    attachment: CompositeAttachment
    size: Extent3D
    discard_policy: DiscardPolicy = DiscardPolicy.ERROR


class AttachmentSlot:
    """
    Declares slot ``index`` of a CompositeAttachment.

    Used as a class attribute; reading it from an attachment instance yields
    the handle stored at that index.

        class GBuffer(CompositeAttachment, length=2):
            albedo = AttachmentSlot(0, TextureFormat.RGBA8_UNORM, USAGES)
            depth = AttachmentSlot(1, TextureFormat.DEPTH32_FLOAT, USAGES,
                                   aspect=TextureAspect.DEPTH_ONLY)
    """

    __slots__ = (
        "index",
        "format",
        "usage",
        "aspect",
        "copy_on_resize",
        "label",
        "layers",
        "_extent",
        "name",
    )

    def __init__(
        self,
        index: int,
        format: TextureFormat,
        usage: TextureUsages,
        aspect: TextureAspect = TextureAspect.ALL,
        copy_on_resize: bool = False,
        label: str | None = None,
        layers: int = 1,
        extent: ExtentFn | None = None,
    ) -> None:
        if layers < 1:
            raise ValueError(f"Attachment slot {index}: layers must be >= 1")
        if extent is not None and layers != 1:
            raise ValueError(
                f"Attachment slot {index}: pass either layers or extent, not both"
            )

        self.index = index
        self.format = format
        self.usage = usage
        self.aspect = aspect
        self.copy_on_resize = copy_on_resize
        self.label = label
        self.layers = layers
        self._extent = extent
        self.name = f"slot{index}"

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    @overload
    def __get__(self, instance: None, owner: type) -> AttachmentSlot: ...
    @overload
    def __get__(self, instance: CompositeAttachment, owner: type) -> Handle: ...

    def __get__(self, instance: Any, owner: type) -> Any:
        if instance is None:
            return self
        return instance[self.index]

    def __set__(self, instance: CompositeAttachment, handle: Handle) -> None:
        instance[self.index] = handle

    def __repr__(self) -> str:
        return (
            f"AttachmentSlot({self.index}, {self.name!r}, {self.format.value}, "
            f"copy_on_resize={self.copy_on_resize})"
        )

    # DESCRIPTORS
    def extent_for(self, size: Extent3D) -> Extent3D:
        """Maps the desired viewport size to this slot's image extent."""
        if self._extent is not None:
            extent = self._extent(size)
        else:
            extent = size.with_layers(self.layers)

        if not isinstance(extent, Extent3D):
            raise TypeError(
                f"{self.name}: extent mapping returned {type(extent).__name__}, "
                "expected Extent3D"
            )
        if not extent.is_valid():
            raise ValueError(f"{self.name}: invalid extent {tuple(extent)}")
        return extent

    def texture_descriptor(self, size: Extent3D) -> TextureDescriptor:
        return TextureDescriptor(
            size=size,
            format=self.format,
            usage=self.usage,
            label=self.label,
        )

    def texture_view_descriptor(self, size: Extent3D) -> TextureViewDescriptor:
        return TextureViewDescriptor(
            format=self.format,
            dimension=view_dimension(size),
            usage=self.usage,
            aspect=self.aspect,
            label=self.label,
        )

    def color_target_state(self) -> ColorTargetState:
        if self.format.is_depth:
            raise ValueError(f"{self.name}: depth attachments have no color target")
        return ColorTargetState(format=self.format, write_mask=ColorWrites.ALL)

    def new_image(self, size: Extent3D) -> Image:
        return Image(
            descriptor=self.texture_descriptor(size),
            view_descriptor=self.texture_view_descriptor(size),
        )

    def discards_content(
        self, images: ImageStore, handle: Handle, extent: Extent3D
    ) -> bool:
        """True when syncing to ``extent`` would throw away CPU-side data."""
        if self.copy_on_resize:
            return False
        image = images.get(handle)
        return image is not None and image.data is not None and image.size != extent

    # CASCADE STEP
    def sync(self, params: AttachmentParams) -> AttachmentParams:
        """
        Brings the image at this slot's index in line with the desired size.
        Mutates the store and this slot's handle only; returns ``params``.
        """
        images, attachment, size, discard_policy = params
        extent = self.extent_for(size)
        handle = attachment[self.index]

        if handle.is_placeholder:
            logger.debug("%s: replacing placeholder with new image", self.name)
            attachment[self.index] = images.add(self.new_image(extent))
            return params

        image = images.get(handle)
        if image is None:
            logger.warning(
                "%s: handle %d has no image in the store, allocating a new one",
                self.name,
                handle.id,
            )
            attachment[self.index] = images.add(self.new_image(extent))

        elif image.size != extent:
            if self.copy_on_resize:
                logger.debug("%s: copy-on-resize -> %s", self.name, tuple(extent))
                images.resize_in_place(handle, extent)
            else:
                logger.debug("%s: descriptor resize -> %s", self.name, tuple(extent))
                images.set_size_descriptor(
                    handle, extent, drop_data=discard_policy is DiscardPolicy.DROP
                )

        return params
