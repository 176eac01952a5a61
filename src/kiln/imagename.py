"""Image reference parsing.

Splits references such as ``registry.local:5000/team/app:1.2`` into the
registry, repository name and tag parts the engine's pull and push calls take.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

__all__ = ["DEFAULT_TAG", "ImageName"]

DEFAULT_TAG = "latest"


def _looks_like_registry(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


@dataclass(frozen=True)
class ImageName:
    """A parsed image reference."""

    name: str
    registry: str = ""
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def parse(cls, reference: str) -> "ImageName":
        ref = reference.strip()
        digest = None
        if "@" in ref:
            ref, digest = ref.split("@", 1)

        registry = ""
        parts = ref.split("/", 1)
        if len(parts) == 2 and _looks_like_registry(parts[0]):
            registry, ref = parts

        tag = None
        # A colon after the last slash separates the tag
        colon = ref.rfind(":")
        if colon > ref.rfind("/"):
            ref, tag = ref[:colon], ref[colon + 1 :]

        return cls(name=ref, registry=registry, tag=tag or None, digest=digest)

    @property
    def name_with_registry(self) -> str:
        if self.registry:
            return f"{self.registry}/{self.name}"
        return self.name

    def get_tag(self) -> str:
        """Return the reference the engine should pull or push."""
        if self.digest:
            return self.digest
        return self.tag or DEFAULT_TAG

    def __str__(self) -> str:
        if self.digest:
            return f"{self.name_with_registry}@{self.digest}"
        return f"{self.name_with_registry}:{self.get_tag()}"
