"""Build core facade.

``Builder`` owns one ``BuildSession`` and the components acting on it. The
instruction interpreter drives it step by step: it queues instructions with
``add_instruction``, asks ``probe_cache`` whether the step can be reused and
calls ``materialize`` to turn the pending group into an image.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, List, Optional, Union

from ..config import BuildSettings
from ..dockerfile import Node
from ..engine.client import EngineClient
from ..engine.progress import ProgressSink
from ..imagename import ImageName
from ..utils.structured_logging import setup_structured_logging
from .acquisition import ImageAcquirer
from .cache import CacheProber
from .container_config import ContainerConfig
from .dockerignore import check_dockerignore
from .driver import BuildDriver
from .mounts import AuxContainerManager, HostPathResolver
from .overlay import add_labels, temporary_cmd, temporary_config
from .session import BuildSession

__all__ = ["Builder"]

logger = logging.getLogger(__name__)


class Builder:
    """Coordinates cache probing, builds, image transfer and helper containers."""

    def __init__(
        self,
        context_dir: Union[str, Path],
        build_file: Union[str, Path],
        *,
        engine: Optional[EngineClient] = None,
        settings: Optional[BuildSettings] = None,
        sink: Optional[ProgressSink] = None,
        resolve_host_path: Optional[HostPathResolver] = None,
    ) -> None:
        self.settings = settings or BuildSettings()
        self.engine = engine or EngineClient(api_timeout=self.settings.engine_timeout)
        self.session = BuildSession(
            context_dir=Path(context_dir),
            build_file=Path(build_file),
            sink=sink or ProgressSink(),
            auth=self.settings.auth,
            utilize_cache=self.settings.utilize_cache,
            tmp_prefix=self.settings.tmp_prefix,
        )
        self.cache = CacheProber(self.engine, timeout_s=self.settings.probe_timeout)
        self.driver = BuildDriver(self.engine)
        self.images = ImageAcquirer(self.engine)
        self.containers = AuxContainerManager(
            self.engine,
            self.images,
            exports_image=self.settings.exports_image,
            mount_image=self.settings.mount_image,
            resolve_host_path=resolve_host_path,
        )
        logger.debug(
            "Build session %s for %s", self.session.key, self.session.build_file
        )

    def close(self) -> None:
        self.engine.close()

    def enable_logging(
        self, logs_dir: Union[str, Path], *, console: bool = False, quiet: bool = False
    ) -> Path:
        """Write this session's logs under ``logs_dir/<session key>``."""
        return setup_structured_logging(
            Path(logs_dir),
            self.session.key,
            level=self.settings.log_level,
            quiet=quiet,
            console=console,
        )

    # Instruction buffer ------------------------------------------------

    def add_instruction(self, node: Node) -> None:
        self.session.pending.children.append(node)

    @property
    def image_id(self) -> str:
        return self.session.image_id

    @property
    def config(self) -> ContainerConfig:
        return self.session.config

    # Build steps --------------------------------------------------------

    async def probe_cache(self) -> bool:
        return await self.cache.probe(self.session)

    async def materialize(self) -> bool:
        return await self.driver.materialize(self.session)

    def check_dockerignore(self) -> int:
        return check_dockerignore(self.session)

    # Config overlay -----------------------------------------------------

    def temporary_cmd(
        self, cmd: Optional[List[str]]
    ) -> ContextManager[ContainerConfig]:
        return temporary_cmd(self.session, cmd)

    def temporary_config(
        self, mutate: Callable[[ContainerConfig], None]
    ) -> ContextManager[ContainerConfig]:
        return temporary_config(self.session, mutate)

    def add_labels(self, labels: Dict[str, str]) -> None:
        add_labels(self.session, labels)

    # Images -------------------------------------------------------------

    async def ensure_image(self, image_name: str, purpose: str) -> Dict[str, Any]:
        return await self.images.ensure_image(self.session, image_name, purpose)

    async def push_image(self, image: Union[str, ImageName]) -> None:
        await self.images.push_image(self.session, image)

    # Helper containers and mounts ---------------------------------------

    async def make_exports_container(self) -> str:
        return await self.containers.make_exports_container(self.session)

    async def make_volume_container(self, path: str) -> str:
        return await self.containers.make_volume_container(self.session, path)

    def add_mount(self, src: str, dest: str, container_id: str = "") -> None:
        self.containers.add_mount(self.session, src, dest, container_id)

    def reset_mounts(self) -> None:
        self.containers.reset_mounts(self.session)

    def get_mount_container_ids(self) -> List[str]:
        return self.containers.get_mount_container_ids(self.session)

    def get_all_mount_container_ids(self) -> List[str]:
        return self.containers.get_all_mount_container_ids(self.session)

    def get_binds(self) -> List[str]:
        return self.containers.get_binds(self.session)

    def get_context_mount_src(self, source_path: str) -> str:
        return self.containers.get_context_mount_src(self.session, source_path)
