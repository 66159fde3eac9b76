from dataclasses import dataclass
from enum import Enum


class DiscardPolicy(str, Enum):
    """What a content-discarding resize does with an image that has CPU data."""

    ERROR = "error"  # raise ContentDiscardError
    DROP = "drop"  # throw the CPU data away, then resize


@dataclass(slots=True)
class AttachmentSettings:
    """
    Resource: configuration for attachment resize cascades.
    """

    enabled: bool = True
    discard_policy: DiscardPolicy = DiscardPolicy.ERROR

    # Only used when the driver has to create the ImageStore itself.
    store_capacity: int | None = None
