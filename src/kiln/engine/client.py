"""Docker engine client facade.

Wraps the Docker SDK's low-level ``APIClient`` behind a small async surface.
Blocking SDK calls run in an executor; the streaming calls (build, pull, push)
return the SDK's blocking message generator so the streaming protocol can
drain it on its own thread.
"""

from __future__ import annotations

import asyncio
import logging
import warnings
from concurrent.futures import Executor
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import docker
from docker.errors import APIError, DockerException, ImageNotFound, NotFound

from ..exceptions import DockerError, ImageNotFoundError
from ..shared.types import AuthConfig

# Suppress the urllib3 exception on close that happens with docker-py
warnings.filterwarnings("ignore", message=".*I/O operation on closed file.*")

logger = logging.getLogger(__name__)

__all__ = ["EngineClient"]


class EngineClient:
    """Async facade over the engine's image and container endpoints."""

    def __init__(self, api: Any = None, api_timeout: float = 120):
        """Initialize the engine client.

        Args:
            api: Preconfigured low-level client; created from the environment
                (``DOCKER_HOST`` and friends) when omitted.
            api_timeout: Per-request timeout (seconds) for Docker SDK calls.
        """
        if api is None:
            try:
                api = docker.from_env(timeout=int(api_timeout)).api
            except DockerException as exc:
                raise DockerError(f"Failed to connect to Docker daemon: {exc}")
        self.api = api

    async def _run(self, fn, *args, executor: Optional[Executor] = None, **kwargs):
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(executor, lambda: fn(*args, **kwargs))

    def close(self) -> None:
        """Close the Docker client connection."""
        try:
            self.api.close()
        except (DockerException, OSError) as exc:
            logger.debug("Ignoring error while closing engine client: %s", exc)

    async def login(self, auth: AuthConfig) -> None:
        """Register credentials so builds can pull private base images."""
        if not auth.username:
            return
        try:
            await self._run(
                self.api.login,
                auth.username,
                password=auth.password,
                email=auth.email,
                registry=auth.server_address,
            )
        except APIError as exc:
            raise DockerError(
                f"Failed to authenticate {auth.username} at "
                f"{auth.server_address or 'default registry'}: {exc}"
            ) from exc

    async def inspect_image(
        self, image_id: str, *, executor: Optional[Executor] = None
    ) -> Dict[str, Any]:
        """Return the engine's image record, or raise ``ImageNotFoundError``."""
        try:
            return await self._run(self.api.inspect_image, image_id, executor=executor)
        except ImageNotFound as exc:
            raise ImageNotFoundError(image_id) from exc
        except (APIError, DockerException) as exc:
            raise DockerError(f"Failed to inspect image {image_id}: {exc}") from exc

    async def list_images(
        self, include_intermediate: bool = True
    ) -> List[Dict[str, Any]]:
        try:
            return await self._run(self.api.images, all=include_intermediate)
        except (APIError, DockerException) as exc:
            raise DockerError(f"Failed to list images: {exc}") from exc

    async def inspect_container(self, name: str) -> Optional[Dict[str, Any]]:
        """Return the container record, or None when it does not exist."""
        try:
            return await self._run(self.api.inspect_container, name)
        except NotFound:
            return None
        except (APIError, DockerException) as exc:
            raise DockerError(f"Failed to inspect container {name}: {exc}") from exc

    async def create_container(
        self,
        name: str,
        image: str,
        *,
        volumes: Optional[List[str]] = None,
        labels: Optional[Dict[str, str]] = None,
        command: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        try:
            return await self._run(
                self.api.create_container,
                image,
                command=command,
                name=name,
                volumes=volumes,
                labels=labels,
            )
        except (APIError, DockerException) as exc:
            raise DockerError(f"Failed to create container {name}: {exc}") from exc

    # Streaming calls --------------------------------------------------

    def build_stream(
        self, context_dir: Path, dockerfile: str, *, nocache: bool
    ) -> Iterator[Dict[str, Any]]:
        return self.api.build(
            path=str(context_dir),
            dockerfile=dockerfile,
            nocache=nocache,
            rm=True,
            decode=True,
        )

    def pull_stream(
        self, repository: str, tag: str, auth: Optional[AuthConfig] = None
    ) -> Iterator[Dict[str, Any]]:
        return self.api.pull(
            repository,
            tag=tag,
            stream=True,
            decode=True,
            auth_config=auth.to_engine() if auth else None,
        )

    def push_stream(
        self, repository: str, tag: str, auth: Optional[AuthConfig] = None
    ) -> Iterator[Dict[str, Any]]:
        return self.api.push(
            repository,
            tag=tag,
            stream=True,
            decode=True,
            auth_config=auth.to_engine() if auth else None,
        )

    @staticmethod
    def is_docker_error(exc: BaseException) -> bool:
        return isinstance(exc, (APIError, DockerException))
