"""Turns the pending instruction group into an engine image."""

from __future__ import annotations

import logging
import re
import uuid
from typing import Any, Dict, List

from ..dockerfile import Node, ast_to_string
from ..engine.client import EngineClient
from ..engine.streaming import stream_engine_call
from ..exceptions import (
    BuildOutputParseError,
    ConfigurationError,
    DockerError,
    StreamDecodeError,
)
from .container_config import ContainerConfig
from .session import BuildSession

__all__ = ["SCRATCH_LABEL", "BuildDriver", "extract_image_id"]

logger = logging.getLogger(__name__)

SCRATCH_LABEL = "ROCKER_SCRATCH=1"
_CAPTURE_IMAGE_ID = re.compile(r"Successfully built ([a-z0-9]{12})")


def extract_image_id(
    aux: List[Dict[str, Any]], messages: List[Dict[str, Any]]
) -> str:
    """Find the built image id in a finished build stream.

    The structured ``aux.ID`` payload wins; the human readable
    ``Successfully built <id>`` line is the fallback for engines that do not
    send it.
    """
    for payload in reversed(aux):
        image_id = payload.get("ID")
        if image_id:
            return str(image_id)

    output = "".join(str(m.get("stream", "")) for m in messages)
    match = _CAPTURE_IMAGE_ID.search(output)
    if match is None:
        raise BuildOutputParseError(
            "Couldn't find image id out of docker build output"
        )
    return match.group(1)


def _normalize(session: BuildSession) -> None:
    children = session.pending.children

    # A lone FROM scratch produces no inspectable layer, so give it one
    if (
        len(children) == 1
        and children[0].is_instruction("from")
        and children[0].args()[:1] == ["scratch"]
    ):
        children.append(Node.instruction("label", SCRATCH_LABEL))

    if not children[0].is_instruction("from"):
        if not session.image_id:
            raise ConfigurationError("Missing initial FROM instruction")
        children.insert(0, Node.instruction("from", session.image_id))


class BuildDriver:
    """Serializes pending instructions, builds them and records the result."""

    def __init__(self, engine: EngineClient) -> None:
        self.engine = engine
        self._logged_in = False

    async def materialize(self, session: BuildSession) -> bool:
        """Build ``session.pending`` on top of the current image.

        Returns False when there was nothing to build. On success the session
        points at the new image, its config draft is replaced by the image's
        config and the pending group is emptied.
        """
        if not session.pending.children:
            return False

        _normalize(session)

        dockerfile_name = f"{session.tmp_prefix}_Dockerfile_{uuid.uuid4().hex[:12]}"
        dockerfile_path = session.context_dir / dockerfile_name
        dockerfile_path.write_text(ast_to_string(session.pending), encoding="utf-8")
        logger.debug("Wrote %s for build in %s", dockerfile_name, session.context_dir)

        try:
            await self._authenticate(session)
            messages: List[Dict[str, Any]] = []
            aux = await self._build(session, dockerfile_name, messages)
        finally:
            dockerfile_path.unlink(missing_ok=True)

        image_id = extract_image_id(aux, messages)
        record = await self.engine.inspect_image(image_id)

        session.image_id = record["Id"]
        session.config = ContainerConfig.from_api(record.get("Config"))
        session.pending = Node()
        logger.info("Built image %s", session.image_id)
        return True

    async def _authenticate(self, session: BuildSession) -> None:
        if self._logged_in or session.auth is None:
            return
        await self.engine.login(session.auth)
        self._logged_in = True

    async def _build(
        self,
        session: BuildSession,
        dockerfile_name: str,
        messages: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        try:
            return await stream_engine_call(
                lambda: self.engine.build_stream(
                    session.context_dir,
                    dockerfile_name,
                    nocache=not session.utilize_cache,
                ),
                session.sink,
                capture=messages,
            )
        except StreamDecodeError as exc:
            raise StreamDecodeError(
                f"Failed to process json stream error: {exc}"
            ) from exc
        except Exception as exc:
            if self.engine.is_docker_error(exc):
                raise DockerError(f"Failed to build image: {exc}") from exc
            raise
