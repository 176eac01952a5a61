"""Auxiliary containers backing data mounts and artifact exports.

Helper containers are created once per session and found again by name, so a
session that restarts against the same build file reuses what the engine
already has instead of piling up duplicates.
"""

from __future__ import annotations

import hashlib
import logging
import os
from typing import Callable, Dict, List, Optional

from ..engine.client import EngineClient
from ..shared.types import Mount
from .acquisition import ImageAcquirer
from .session import BuildSession

__all__ = ["EXPORTS_VOLUME", "RSYNC_VOLUME", "AuxContainerManager"]

logger = logging.getLogger(__name__)

EXPORTS_VOLUME = "/.kiln_exports"
RSYNC_VOLUME = "/opt/rsync/bin"

HostPathResolver = Callable[[str], str]


def _unique_container_ids(mounts: List[Mount]) -> List[str]:
    return list(dict.fromkeys(m.container_id for m in mounts if m.container_id))


class AuxContainerManager:
    """Provisions helper containers and tracks the session's mounts."""

    def __init__(
        self,
        engine: EngineClient,
        acquirer: ImageAcquirer,
        *,
        exports_image: str = "grammarly/rsync-static:1",
        mount_image: str = "grammarly/scratch:latest",
        resolve_host_path: Optional[HostPathResolver] = None,
    ) -> None:
        self.engine = engine
        self.acquirer = acquirer
        self.exports_image = exports_image
        self.mount_image = mount_image
        self.resolve_host_path = resolve_host_path or (lambda path: path)

    # Container provisioning -------------------------------------------

    def exports_container_name(self, session: BuildSession) -> str:
        return f"kiln_exports_{session.key}"

    def volume_container_name(self, session: BuildSession, path: str) -> str:
        digest = hashlib.sha256(path.encode("utf-8", errors="ignore")).hexdigest()[:8]
        return f"kiln_mount_{session.key}_{digest}"

    def _labels(self, session: BuildSession) -> Dict[str, str]:
        return {
            "kiln.build_file": str(session.build_file),
            "kiln.image_id": session.image_id,
        }

    async def make_exports_container(self, session: BuildSession) -> str:
        """Return the session's export container id, creating it on first use."""
        if session.exports_container_id:
            return session.exports_container_id

        session.exports_container_id = await self.ensure_container(
            session,
            self.exports_container_name(session),
            image=self.exports_image,
            volumes=[RSYNC_VOLUME, EXPORTS_VOLUME],
            labels=self._labels(session),
            purpose="exports",
        )
        return session.exports_container_id

    async def make_volume_container(self, session: BuildSession, path: str) -> str:
        """Ensure a data-volume container that persists ``path`` across steps."""
        return await self.ensure_container(
            session,
            self.volume_container_name(session, path),
            image=self.mount_image,
            volumes=[path],
            labels={**self._labels(session), "kiln.volume": path},
            purpose=f"mount {path}",
        )

    async def ensure_container(
        self,
        session: BuildSession,
        name: str,
        *,
        image: str,
        volumes: List[str],
        labels: Dict[str, str],
        purpose: str,
    ) -> str:
        """Return the id of container ``name``, creating it when absent."""
        existing = await self.engine.inspect_container(name)
        if existing is not None:
            logger.debug("Reusing %s container %s", purpose, name)
            return existing["Id"]

        await self.acquirer.ensure_image(session, image, purpose)
        session.sink.info(f"Create container: {name} for {purpose}")
        created = await self.engine.create_container(
            name, image, volumes=volumes, labels=labels
        )
        logger.info("Created %s container %s (%s)", purpose, name, created["Id"][:12])
        return created["Id"]

    # Mount bookkeeping ------------------------------------------------

    def add_mount(
        self, session: BuildSession, src: str, dest: str, container_id: str = ""
    ) -> Mount:
        mount = Mount(src=src, dest=dest, container_id=container_id)
        session.mounts.append(mount)
        session.all_mounts.append(mount)
        return mount

    def reset_mounts(self, session: BuildSession) -> None:
        """Detach the active mounts; ``all_mounts`` keeps their history."""
        session.mounts = []

    def get_mount_container_ids(self, session: BuildSession) -> List[str]:
        return _unique_container_ids(session.mounts)

    def get_all_mount_container_ids(self, session: BuildSession) -> List[str]:
        return _unique_container_ids(session.all_mounts)

    def get_binds(self, session: BuildSession) -> List[str]:
        return [m.bind_spec() for m in session.mounts if m.is_bind]

    def get_context_mount_src(self, session: BuildSession, source_path: str) -> str:
        """Resolve a mount source against the context directory."""
        if not os.path.isabs(source_path):
            source_path = os.path.join(session.context_dir, source_path)
        return self.resolve_host_path(os.path.normpath(source_path))
