"""Plain data types shared across layers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass
class AuthConfig:
    """Registry credentials passed to the engine for build, pull and push."""

    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None
    server_address: Optional[str] = None

    def to_engine(self) -> Dict[str, str]:
        """Return the ``auth_config`` mapping the Docker SDK expects."""
        payload = {
            "username": self.username,
            "password": self.password,
            "email": self.email,
            "serveraddress": self.server_address,
        }
        return {key: value for key, value in payload.items() if value}


@dataclass(frozen=True)
class Mount:
    """A data mount attached to build containers.

    An empty ``container_id`` means a plain host bind; otherwise the data lives
    in the volume of the referenced auxiliary container.
    """

    src: str
    dest: str
    container_id: str = ""

    @property
    def is_bind(self) -> bool:
        return not self.container_id

    def bind_spec(self) -> str:
        return f"{self.src}:{self.dest}"


__all__ = ["AuthConfig", "Mount"]
