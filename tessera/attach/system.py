from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, List, Protocol, Type, TypeVar

from tessera.attach.composite import CompositeAttachment
from tessera.attach.settings import AttachmentSettings, DiscardPolicy
from tessera.attach.slot import AttachmentParams
from tessera.attach.store import ImageStore
from tessera.core.scheduler import Scheduler, Stage, SystemFn
from tessera.core.world import World
from tessera.types import EntityId, Extent3D, SystemId

logger = logging.getLogger(__name__)

C = TypeVar("C", bound=CompositeAttachment)


class SizeSource(Protocol):
    def current_size(self) -> Extent3D | None: ...


@dataclass(frozen=True)
class Viewport:
    """
    Physical pixel size of the render target an entity draws into.
    A 0x0 viewport has not been sized yet.
    """

    __soa_dtype__ = [("width", "i4"), ("height", "i4"), ("layers", "i4")]

    width: int = 0
    height: int = 0
    layers: int = 1

    def current_size(self) -> Extent3D | None:
        if self.width == 0 and self.height == 0:
            return None
        return Extent3D(self.width, self.height, self.layers)


@dataclass(frozen=True)
class AttachmentsResized:
    """Event: at least one image of an entity's attachment was created or resized."""

    entity: EntityId
    attachment_type: type
    size: Extent3D


def ensure_image_store(world: World, settings: AttachmentSettings) -> ImageStore:
    images = world.try_resource(ImageStore)
    if images is None:
        images = ImageStore(capacity=settings.store_capacity)
        world.add_resource(images)
    return images


def resize_cascade_system(
    attachment_type: Type[C], source_type: Type[SizeSource] = Viewport
) -> SystemFn:
    """
    Builds the per-tick system that keeps every ``attachment_type`` component
    sized to the ``source_type`` component on the same entity.
    """
    if not attachment_type.is_chain_defined():
        raise TypeError(f"{attachment_type.__name__} has no slots defined")

    def system(world: World) -> None:
        settings = world.try_resource(AttachmentSettings) or AttachmentSettings()
        if not settings.enabled:
            return

        images = ensure_image_store(world, settings)

        for eid, attachment, source in world.join(attachment_type, source_type):
            size = source.current_size()
            if size is None:
                logger.debug("Entity %d: size source not ready, skipping", eid)
                continue

            try:
                attachment_type.extents(size)
            except ValueError as e:
                logger.warning(
                    "Entity %d: skipping %s sync, %s",
                    eid,
                    attachment_type.__name__,
                    e,
                )
                continue

            if settings.discard_policy is DiscardPolicy.ERROR:
                attachment.check_discards(images, size)

            before = attachment.snapshot(images)
            attachment_type.cascade(
                AttachmentParams(images, attachment, size, settings.discard_policy)
            )

            if attachment.snapshot(images) != before:
                world.emit_event(AttachmentsResized(eid, attachment_type, size))

    system.__name__ = f"resize_cascade_{attachment_type.__name__}"
    system.__qualname__ = system.__name__
    return system


class AttachmentPlugin(Generic[C]):
    """Registers the resize cascade for one attachment type on a Scheduler."""

    def __init__(
        self,
        attachment_type: Type[C],
        source_type: Type[SizeSource] = Viewport,
    ) -> None:
        self.attachment_type = attachment_type
        self.source_type = source_type

    @property
    def system_id(self) -> SystemId:
        return SystemId(f"resize_cascade_{self.attachment_type.__name__}")

    def build(
        self,
        scheduler: Scheduler,
        after: SystemId | List[SystemId] | None = None,
    ) -> None:
        scheduler.add_system(
            Stage.POST_UPDATE,
            resize_cascade_system(self.attachment_type, self.source_type),
            name=self.system_id,
            after=after,
        )
