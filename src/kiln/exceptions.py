"""Kiln exception hierarchy.

Every error the build core surfaces to its caller derives from ``KilnError`` so
the interpreter driving a build can decide between aborting and reporting.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "BuildOutputParseError",
    "CacheProbeError",
    "CacheProbeTimeout",
    "ConfigurationError",
    "DockerError",
    "ImageNotFoundError",
    "JSONMessageError",
    "KilnError",
    "StreamDecodeError",
]


class KilnError(Exception):
    """Base class for kiln exceptions."""


class ConfigurationError(KilnError):
    """Raised when the build session or settings are not usable as given."""


class DockerError(KilnError):
    """Raised when an engine call fails."""


class ImageNotFoundError(DockerError):
    """Raised when the engine has no image for a given reference."""

    def __init__(self, image_id: str) -> None:
        super().__init__(f"No such image: {image_id}")
        self.image_id = image_id


class StreamDecodeError(KilnError):
    """Raised when an engine progress stream cannot be processed."""


class JSONMessageError(StreamDecodeError):
    """An error message delivered inside an engine progress stream."""

    def __init__(self, message: str, code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class CacheProbeTimeout(KilnError):
    """Raised when cache candidates were not inspected within the ceiling."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Timeout while fetching cached images ({timeout_s:g}s)")
        self.timeout_s = timeout_s


class CacheProbeError(DockerError):
    """Raised when inspecting one of the cache candidates fails."""

    def __init__(self, image_id: str, cause: BaseException) -> None:
        super().__init__(f"Failed to inspect cache candidate {image_id}: {cause}")
        self.image_id = image_id


class BuildOutputParseError(KilnError):
    """Raised when the built image id cannot be found in the build output."""
