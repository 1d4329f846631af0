"""Data models for Kubernetes objects handled by kubersync."""

import copy
from dataclasses import dataclass, field
from typing import Any, Optional

from .utils import decode_data, encode_data, object_key


@dataclass
class Secret:
    """A Kubernetes Secret with its data decoded to bytes."""

    namespace: str
    """Namespace the secret lives in"""

    name: str
    """Name of the secret"""

    data: dict[str, bytes] = field(default_factory=dict)
    """Entries: relative path -> raw bytes"""

    resource_version: Optional[str] = None
    """metadata.resourceVersion as last seen from the API server"""

    raw: dict[str, Any] = field(default_factory=dict, repr=False)
    """The full object as received, used to round-trip unknown fields"""

    @property
    def key(self) -> str:
        """Cache key in ``namespace/name`` form."""
        return object_key(self.namespace, self.name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Secret":
        """Create a Secret from the API JSON representation.

        ``stringData`` is write-only on the server side, but a hand-built
        object may carry it; it is folded into ``data`` the way the API
        server would.
        """
        metadata = data.get("metadata") or {}
        entries = decode_data(data.get("data"))
        for key, value in (data.get("stringData") or {}).items():
            entries[key] = value.encode("utf-8")
        return cls(
            namespace=metadata.get("namespace", ""),
            name=metadata.get("name", ""),
            data=entries,
            resource_version=metadata.get("resourceVersion"),
            raw=data,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to the API JSON representation."""
        body = copy.deepcopy(self.raw) if self.raw else {}
        body.setdefault("apiVersion", "v1")
        body.setdefault("kind", "Secret")
        metadata = body.setdefault("metadata", {})
        metadata["name"] = self.name
        metadata["namespace"] = self.namespace
        if self.resource_version:
            metadata["resourceVersion"] = self.resource_version
        body.pop("stringData", None)
        body["data"] = encode_data(self.data)
        return body

    def with_data(self, entries: dict[str, bytes]) -> "Secret":
        """Return a copy of this secret whose entries are replaced in full."""
        return Secret(
            namespace=self.namespace,
            name=self.name,
            data=dict(entries),
            resource_version=self.resource_version,
            raw=self.raw,
        )
