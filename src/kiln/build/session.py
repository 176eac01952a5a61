"""Build session state."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..dockerfile import Node
from ..engine.progress import ProgressSink
from ..shared.types import AuthConfig, Mount
from .container_config import ContainerConfig

__all__ = ["BuildSession"]


@dataclass
class BuildSession:
    """Mutable state of one build, owned by the coordinating task.

    ``cache_busted`` only ever flips from False to True; once a probe misses,
    later steps skip probing. ``pending`` is consumed by each materialization.
    """

    context_dir: Path
    build_file: Path
    sink: ProgressSink = field(default_factory=ProgressSink)
    auth: Optional[AuthConfig] = None
    utilize_cache: bool = True
    tmp_prefix: str = ".kilntmp"

    image_id: str = ""
    config: ContainerConfig = field(default_factory=ContainerConfig)
    pending: Node = field(default_factory=Node)
    cache_busted: bool = False
    mounts: List[Mount] = field(default_factory=list)
    all_mounts: List[Mount] = field(default_factory=list)
    exports_container_id: str = ""
    git_ignored: bool = False

    def __post_init__(self) -> None:
        self.context_dir = Path(self.context_dir).resolve()
        build_file = Path(self.build_file)
        if not build_file.is_absolute():
            build_file = self.context_dir / build_file
        self.build_file = build_file.resolve()

    @property
    def key(self) -> str:
        """Deterministic identity used to name the session's helper containers."""
        digest = hashlib.sha256(str(self.build_file).encode("utf-8", errors="ignore"))
        return digest.hexdigest()[:12]

    def build_file_relative(self) -> str:
        """Path of the build file relative to the context directory."""
        return os.path.relpath(self.build_file, self.context_dir)

    def mark_cache_busted(self) -> None:
        self.cache_busted = True
