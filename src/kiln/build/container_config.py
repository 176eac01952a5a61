"""Container configuration draft and its structural comparison."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

__all__ = ["ContainerConfig", "compare_configs"]


@dataclass
class ContainerConfig:
    """The subset of an engine container config a build step depends on."""

    image: str = ""
    cmd: Optional[List[str]] = None
    entrypoint: Optional[List[str]] = None
    env: List[str] = field(default_factory=list)
    labels: Optional[Dict[str, str]] = None
    volumes: Dict[str, Any] = field(default_factory=dict)
    exposed_ports: Dict[str, Any] = field(default_factory=dict)
    on_build: List[str] = field(default_factory=list)
    working_dir: str = ""
    user: str = ""
    attach_stdout: bool = False
    attach_stderr: bool = False
    open_stdin: bool = False
    tty: bool = False

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "ContainerConfig":
        """Build a config from the engine's PascalCase JSON."""
        data = data or {}
        return cls(
            image=data.get("Image") or "",
            cmd=list(data["Cmd"]) if data.get("Cmd") is not None else None,
            entrypoint=(
                list(data["Entrypoint"])
                if data.get("Entrypoint") is not None
                else None
            ),
            env=list(data.get("Env") or []),
            labels=dict(data["Labels"]) if data.get("Labels") is not None else None,
            volumes=dict(data.get("Volumes") or {}),
            exposed_ports=dict(data.get("ExposedPorts") or {}),
            on_build=list(data.get("OnBuild") or []),
            working_dir=data.get("WorkingDir") or "",
            user=data.get("User") or "",
            attach_stdout=bool(data.get("AttachStdout")),
            attach_stderr=bool(data.get("AttachStderr")),
            open_stdin=bool(data.get("OpenStdin")),
            tty=bool(data.get("Tty")),
        )

    def copy(self) -> "ContainerConfig":
        return copy.deepcopy(self)


def compare_configs(
    a: Optional[ContainerConfig], b: Optional[ContainerConfig]
) -> bool:
    """Return True when two configs would produce the same build step.

    Sequences (command, entrypoint, env, onbuild) compare in order; mappings
    (labels, volumes, exposed ports) compare by key set and, for labels, value.
    Missing and empty collections are treated alike.
    """
    if a is None or b is None:
        return False

    if (
        a.attach_stdout != b.attach_stdout
        or a.attach_stderr != b.attach_stderr
        or a.user != b.user
        or a.working_dir != b.working_dir
        or a.open_stdin != b.open_stdin
        or a.tty != b.tty
    ):
        return False

    if list(a.cmd or []) != list(b.cmd or []):
        return False
    if list(a.entrypoint or []) != list(b.entrypoint or []):
        return False
    if list(a.env) != list(b.env):
        return False
    if list(a.on_build) != list(b.on_build):
        return False
    if dict(a.labels or {}) != dict(b.labels or {}):
        return False
    if set(a.volumes) != set(b.volumes):
        return False
    if set(a.exposed_ports) != set(b.exposed_ports):
        return False
    return True
