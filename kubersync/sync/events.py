"""Change notifications delivered by the secret informer."""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from ..models import Secret


class SecretEventType(str, Enum):
    """Kinds of change to a watched secret."""

    ADDED = "added"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True)
class SecretAdded:
    """A secret appeared (including the initial list replay)."""

    secret: Secret
    type: SecretEventType = SecretEventType.ADDED


@dataclass(frozen=True)
class SecretUpdated:
    """A secret changed, or was re-delivered by a periodic resync."""

    old: Secret
    secret: Secret
    type: SecretEventType = SecretEventType.UPDATED


@dataclass(frozen=True)
class SecretDeleted:
    """A secret was deleted. ``secret`` is the last known state."""

    secret: Secret
    type: SecretEventType = SecretEventType.DELETED


SecretEvent = Union[SecretAdded, SecretUpdated, SecretDeleted]
