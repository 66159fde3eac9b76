from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Set

from tessera.attach.image import Image
from tessera.types import Extent3D, ImageId

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True, order=True)
class Handle:
    """
    Weak reference to an image in an ImageStore.
    Holding this does not keep the image alive.
    """

    id: ImageId

    @property
    def is_placeholder(self) -> bool:
        return self.id == PLACEHOLDER_ID


PLACEHOLDER_ID = ImageId(0)

# Reserved handle meaning "no image materialized yet". Never issued by a store.
PLACEHOLDER = Handle(PLACEHOLDER_ID)


class StoreExhaustedError(RuntimeError):
    """The store is at capacity and cannot take another image."""


class ContentDiscardError(RuntimeError):
    """A size-only change was requested for an image that carries CPU content."""


@dataclass(slots=True)
class StoreChanges:
    """Image ids touched since the last drain, for GPU mirrors."""

    changed: Set[ImageId] = field(default_factory=set)
    removed: Set[ImageId] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.changed or self.removed)


class ImageStore:
    """
    Handle-indexed storage for images. Owns every image; composites only hold
    handles into it.
    """

    def __init__(self, capacity: int | None = None) -> None:
        self.capacity = capacity
        self._images: Dict[ImageId, Image] = {}
        self._next_id: int = PLACEHOLDER_ID + 1
        self._changes = StoreChanges()

    def add(self, image: Image) -> Handle:
        """Stores ``image`` under a fresh handle."""
        if self.capacity is not None and len(self._images) >= self.capacity:
            raise StoreExhaustedError(
                f"ImageStore is full ({self.capacity} images); "
                f"cannot allocate {image.descriptor.label or 'image'} "
                f"{tuple(image.size)}"
            )

        image_id = ImageId(self._next_id)
        self._next_id += 1

        self._images[image_id] = image
        self._changes.changed.add(image_id)
        logger.debug("Allocated image %d %s", image_id, tuple(image.size))
        return Handle(image_id)

    allocate = add

    def get(self, handle: Handle) -> Image | None:
        return self._images.get(handle.id)

    def resize_in_place(self, handle: Handle, size: Extent3D) -> None:
        """Resizes the image, keeping its content in the overlapping region."""
        self._expect(handle).resize_in_place(size)
        self._changes.changed.add(handle.id)

    def set_size_descriptor(
        self, handle: Handle, size: Extent3D, drop_data: bool = False
    ) -> None:
        """
        Changes only the recorded size. Whatever content the GPU copy held is
        undefined afterwards.

        Raises ContentDiscardError when the image carries CPU-side data, unless
        ``drop_data`` asks for that data to be thrown away explicitly.
        """
        image = self._expect(handle)
        if image.data is not None:
            if not drop_data:
                raise ContentDiscardError(
                    f"Image {handle.id} has CPU data; a size-only change from "
                    f"{tuple(image.size)} to {tuple(size)} would corrupt it"
                )
            logger.debug("Dropping CPU data of image %d before resize", handle.id)
            image.data = None

        image.set_size(size)
        self._changes.changed.add(handle.id)

    def mark_changed(self, handle: Handle) -> None:
        """Flags an image whose content was written directly."""
        self._expect(handle)
        self._changes.changed.add(handle.id)

    def remove(self, handle: Handle) -> Image | None:
        image = self._images.pop(handle.id, None)
        if image is not None:
            self._changes.changed.discard(handle.id)
            self._changes.removed.add(handle.id)
            logger.debug("Removed image %d", handle.id)
        return image

    def collect(self, live: Iterable[Handle]) -> List[Handle]:
        """Removes every image not referenced by ``live``. Returns what was freed."""
        keep = {h.id for h in live}
        freed = [Handle(i) for i in list(self._images) if i not in keep]
        for handle in freed:
            self.remove(handle)
        return freed

    def drain_changes(self) -> StoreChanges:
        changes, self._changes = self._changes, StoreChanges()
        return changes

    def handles(self) -> Iterator[Handle]:
        for image_id in self._images:
            yield Handle(image_id)

    def _expect(self, handle: Handle) -> Image:
        image = self._images.get(handle.id)
        if image is None:
            raise KeyError(f"No image for handle {handle.id}")
        return image

    def __contains__(self, handle: Handle) -> bool:
        return handle.id in self._images

    def __len__(self) -> int:
        return len(self._images)
