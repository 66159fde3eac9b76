from __future__ import annotations

from typing import Any, ClassVar, Dict, Iterable, Iterator, List, Tuple

from tessera.attach.slot import AttachmentParams, AttachmentSlot
from tessera.attach.store import PLACEHOLDER, ContentDiscardError, Handle, ImageStore
from tessera.chain import Chained, ChainDefinitionError, Link
from tessera.types import Extent3D

Snapshot = Tuple[Tuple[Handle, Extent3D | None], ...]


class CompositeAttachment(Chained):
    """
    A component holding one image handle per declared AttachmentSlot.

    The subclass names its length and declares one slot per index:

        class DrawCanvas(CompositeAttachment, length=1):
            canvas = AttachmentSlot(0, TextureFormat.RGBA32_FLOAT, USAGES,
                                    copy_on_resize=True)

    Declaring a length that does not match the slots (or leaving an index
    gap) raises ChainDefinitionError when the class statement runs.
    ``DrawCanvas.cascade(params)`` then synchronizes every slot in order.
    """

    slots: ClassVar[Tuple[AttachmentSlot, ...]] = ()

    def __init__(self, handles: Iterable[Handle] | None = None) -> None:
        cls = type(self)
        if not cls.is_chain_defined():
            raise TypeError(
                f"{cls.__name__} declares no length; only concrete "
                "attachments can be instantiated"
            )

        n = cls.chain_length()
        if handles is None:
            self._handles: List[Handle] = [PLACEHOLDER] * n
        else:
            self._handles = list(handles)
            if len(self._handles) != n:
                raise ValueError(
                    f"{cls.__name__} holds {n} handle(s), got {len(self._handles)}"
                )

    @classmethod
    def _chain_links(cls) -> List[Link[Any, Any]]:
        found: Dict[str, AttachmentSlot] = {}
        for klass in reversed(cls.__mro__):
            for name, attr in vars(klass).items():
                if isinstance(attr, AttachmentSlot):
                    found[name] = attr

        for name, slot in found.items():
            if slot.name != name:
                raise ChainDefinitionError(
                    f"slot {slot.index} is bound as both {slot.name!r} and {name!r}"
                )

        cls.slots = tuple(sorted(found.values(), key=lambda s: s.index))
        return [
            Link(
                index=slot.index,
                func=slot.sync,
                takes=AttachmentParams,
                gives=AttachmentParams,
                name=f"{cls.__name__}.{slot.name}",
            )
            for slot in cls.slots
        ]

    @classmethod
    def extents(cls, size: Extent3D) -> Tuple[Extent3D, ...]:
        """Per-slot extents for a desired size. Raises ValueError if any is invalid."""
        if not size.is_valid():
            raise ValueError(f"invalid size {tuple(size)}")
        return tuple(slot.extent_for(size) for slot in cls.slots)

    @classmethod
    def slot(cls, index: int) -> AttachmentSlot:
        return cls.slots[index]

    def check_discards(self, images: ImageStore, size: Extent3D) -> None:
        """
        Raises ContentDiscardError if resizing to ``size`` would drop CPU data
        in any slot. Nothing is touched, so a failing pass leaves every slot
        at its old size.
        """
        for slot in self.slots:
            handle = self[slot.index]
            if slot.discards_content(images, handle, slot.extent_for(size)):
                raise ContentDiscardError(
                    f"{type(self).__name__}.{slot.name}: image {handle.id} has "
                    f"CPU data and would be resized to {tuple(size)} without "
                    "copying it"
                )

    def snapshot(self, images: ImageStore) -> Snapshot:
        """Handles paired with the size of the image they currently resolve to."""
        out = []
        for handle in self._handles:
            image = images.get(handle)
            out.append((handle, image.size if image is not None else None))
        return tuple(out)

    def resolve(self, images: ImageStore) -> bool:
        """True when every handle points at a live image."""
        return all(handle in images for handle in self._handles)

    def __getitem__(self, index: int) -> Handle:
        return self._handles[index]

    def __setitem__(self, index: int, handle: Handle) -> None:
        if not isinstance(handle, Handle):
            raise TypeError(f"expected Handle, got {type(handle).__name__}")
        self._handles[index] = handle

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self) -> Iterator[Handle]:
        return iter(self._handles)

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._handles == other._handles  # type: ignore[attr-defined]

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        pairs = ", ".join(
            f"{slot.name}={handle.id}" for slot, handle in zip(self.slots, self)
        )
        return f"{type(self).__name__}({pairs})"
