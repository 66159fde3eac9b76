from tessera.attach.composite import CompositeAttachment
from tessera.attach.image import (
    ColorTargetState,
    Image,
    TextureAspect,
    TextureDescriptor,
    TextureFormat,
    TextureUsages,
    TextureViewDescriptor,
)
from tessera.attach.settings import AttachmentSettings, DiscardPolicy
from tessera.attach.slot import AttachmentParams, AttachmentSlot
from tessera.attach.store import (
    PLACEHOLDER,
    ContentDiscardError,
    Handle,
    ImageStore,
    StoreExhaustedError,
)
from tessera.attach.system import (
    AttachmentPlugin,
    AttachmentsResized,
    Viewport,
    resize_cascade_system,
)

__all__ = [
    "AttachmentParams",
    "AttachmentPlugin",
    "AttachmentSettings",
    "AttachmentSlot",
    "AttachmentsResized",
    "ColorTargetState",
    "CompositeAttachment",
    "ContentDiscardError",
    "DiscardPolicy",
    "Handle",
    "Image",
    "ImageStore",
    "PLACEHOLDER",
    "StoreExhaustedError",
    "TextureAspect",
    "TextureDescriptor",
    "TextureFormat",
    "TextureUsages",
    "TextureViewDescriptor",
    "Viewport",
    "resize_cascade_system",
]
