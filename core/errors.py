# core/errors.py
from __future__ import annotations


# ----------------------------
# Stable exception types
# ----------------------------
class StickerError(RuntimeError):
    """Base class for sticker resolution and delivery errors."""


class LookupFailure(StickerError):
    """A registry or identity collaborator could not answer (DB down, Discord API error).

    Always propagated. An outage must never look like "sticker does not exist".
    """


class ResourceUnavailable(StickerError):
    """The sticker record was found but its image cannot be materialized."""


class DeliveryFailure(StickerError):
    """Resolution and materialization succeeded but the webhook send failed."""


class StickerConflict(StickerError):
    """An administrative write collided with an existing name/prefix/installation."""
