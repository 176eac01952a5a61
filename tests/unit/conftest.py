import asyncio
import io
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from rich.console import Console

from kiln.build import Builder
from kiln.config import BuildSettings
from kiln.engine.client import EngineClient
from kiln.engine.progress import ProgressSink
from kiln.exceptions import ImageNotFoundError

_LABEL_LINE = re.compile(r"^LABEL (\S+?)=(\S+)$", re.MULTILINE)


class FakeEngine:
    """In-memory stand-in for ``EngineClient``."""

    is_docker_error = staticmethod(EngineClient.is_docker_error)

    def __init__(self) -> None:
        self.images: Dict[str, Dict[str, Any]] = {}
        self.containers: Dict[str, Dict[str, Any]] = {}
        self.calls: Dict[str, int] = {}
        self.inspect_delays: Dict[str, float] = {}
        self.inspect_errors: Dict[str, Exception] = {}
        self.build_messages: Optional[List[Dict[str, Any]]] = None
        self.built_dockerfiles: List[str] = []
        self.build_args: List[Dict[str, Any]] = []
        self.pulled: List[tuple] = []
        self.pushed: List[tuple] = []
        self.pull_error: Optional[Exception] = None
        self.pull_adds_image = True
        self.logins: List[Any] = []
        self.closed = False

    def _count(self, name: str) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1

    def add_image(
        self,
        image_id: str,
        parent: str = "",
        created: str = "2015-01-01T00:00:00Z",
        config: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        record = {
            "Id": image_id,
            "Parent": parent,
            "Created": created,
            "ContainerConfig": dict(config or {}),
            "Config": dict(config or {}),
        }
        self.images[image_id] = record
        return record

    async def inspect_image(self, image_id: str, *, executor=None) -> Dict[str, Any]:
        self._count("inspect_image")
        delay = self.inspect_delays.get(image_id)
        if delay:
            await asyncio.sleep(delay)
        if image_id in self.inspect_errors:
            raise self.inspect_errors[image_id]
        for record in self.images.values():
            if record["Id"] == image_id or record["Id"].startswith(
                f"sha256:{image_id}"
            ):
                return record
        raise ImageNotFoundError(image_id)

    async def list_images(self, include_intermediate: bool = True):
        self._count("list_images")
        return [
            {"Id": r["Id"], "ParentId": r["Parent"]} for r in self.images.values()
        ]

    async def inspect_container(self, name: str):
        self._count("inspect_container")
        return self.containers.get(name)

    async def create_container(self, name, image, *, volumes=None, labels=None, command=None):
        self._count("create_container")
        record = {
            "Id": f"c{len(self.containers) + 1:063d}",
            "Name": name,
            "Image": image,
            "Volumes": list(volumes or []),
            "Labels": dict(labels or {}),
        }
        self.containers[name] = record
        return {"Id": record["Id"]}

    async def login(self, auth) -> None:
        self.logins.append(auth)

    def close(self) -> None:
        self.closed = True

    def build_stream(self, context_dir: Path, dockerfile: str, *, nocache: bool):
        self._count("build")
        text = (Path(context_dir) / dockerfile).read_text(encoding="utf-8")
        self.built_dockerfiles.append(text)
        self.build_args.append(
            {"context_dir": context_dir, "dockerfile": dockerfile, "nocache": nocache}
        )
        if self.build_messages is not None:
            return iter(self.build_messages)

        image_id = f"sha256:{len(self.built_dockerfiles):012x}" + "0" * 52
        labels = dict(_LABEL_LINE.findall(text))
        self.add_image(image_id, config={"Labels": labels or None, "Cmd": ["sh"]})
        return iter(
            [
                {"stream": "Step 1/1 : noop\n"},
                {"aux": {"ID": image_id}},
                {"stream": f"Successfully built {image_id[7:19]}\n"},
            ]
        )

    def pull_stream(self, repository: str, tag: str, auth=None):
        self._count("pull")
        self.pulled.append((repository, tag, auth))
        if self.pull_error is not None:
            raise self.pull_error
        if self.pull_adds_image:
            ref = f"{repository}:{tag}"
            self.images[ref] = {"Id": ref, "Parent": "", "Config": {}}
        return iter([{"status": "Pulling from " + repository, "id": tag}])

    def push_stream(self, repository: str, tag: str, auth=None):
        self._count("push")
        self.pushed.append((repository, tag, auth))
        return iter([{"status": "Pushed", "id": tag}])


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def sink(output: io.StringIO) -> ProgressSink:
    return ProgressSink(console=Console(file=output, force_terminal=False, width=120))


@pytest.fixture
def builder(tmp_path: Path, engine: FakeEngine, sink: ProgressSink) -> Builder:
    (tmp_path / "Rockerfile").write_text("FROM scratch\n", encoding="utf-8")
    return Builder(
        tmp_path,
        "Rockerfile",
        engine=engine,  # type: ignore[arg-type]
        settings=BuildSettings(probe_timeout=0.5),
        sink=sink,
    )
