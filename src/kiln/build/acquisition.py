"""Image acquisition (pull if absent) and publishing (push)."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, Union

from ..engine.client import EngineClient
from ..engine.progress import ProgressSink
from ..engine.streaming import stream_engine_call
from ..exceptions import DockerError, ImageNotFoundError, StreamDecodeError
from ..imagename import ImageName
from .session import BuildSession

__all__ = ["ImageAcquirer"]

logger = logging.getLogger(__name__)


class ImageAcquirer:
    """Pulls missing images and pushes finished ones, streaming progress."""

    def __init__(self, engine: EngineClient) -> None:
        self.engine = engine

    async def ensure_image(
        self, session: BuildSession, image_name: str, purpose: str
    ) -> Dict[str, Any]:
        """Return the image record for ``image_name``, pulling it when missing."""
        try:
            return await self.engine.inspect_image(image_name)
        except ImageNotFoundError:
            pass

        image = ImageName.parse(image_name)
        session.sink.info(f"Pulling image: {image_name} for {purpose}")
        logger.info("Pulling %s for %s", image, purpose)
        await self._stream(
            "pull",
            image,
            lambda: self.engine.pull_stream(
                image.name_with_registry, image.get_tag(), session.auth
            ),
            session.sink,
        )
        return await self.engine.inspect_image(image_name)

    async def push_image(
        self, session: BuildSession, image: Union[str, ImageName]
    ) -> None:
        if isinstance(image, str):
            image = ImageName.parse(image)
        session.sink.info(f"Pushing image: {image}")
        logger.info("Pushing %s", image)
        await self._stream(
            "push",
            image,
            lambda: self.engine.push_stream(
                image.name_with_registry, image.get_tag(), session.auth
            ),
            session.sink,
        )

    async def _stream(
        self,
        action: str,
        image: ImageName,
        call: Callable[[], Iterable[Dict[str, Any]]],
        sink: ProgressSink,
    ) -> None:
        try:
            await stream_engine_call(call, sink)
        except StreamDecodeError as exc:
            raise StreamDecodeError(
                f"Failed to process json stream for image: {image}, error: {exc}"
            ) from exc
        except Exception as exc:
            if self.engine.is_docker_error(exc):
                raise DockerError(
                    f"Failed to {action} image: {image}, error: {exc}"
                ) from exc
            raise
