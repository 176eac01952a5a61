"""Rendering of the engine's JSON progress messages.

Build, pull and push all report progress as a stream of JSON objects. This
module turns them into human readable output on a rich console: raw ``stream``
text is echoed, ``status`` lines are printed per layer id, and on a terminal
the ``progressDetail`` counters drive one progress bar per layer.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
)

from ..exceptions import JSONMessageError, StreamDecodeError

__all__ = ["ProgressDisplay", "ProgressSink"]

logger = logging.getLogger(__name__)


@dataclass
class ProgressSink:
    """Output stream and terminal capability used for user-facing progress."""

    console: Console = field(default_factory=lambda: Console(file=sys.stdout))
    prefix: str = "[kiln]"

    @property
    def is_terminal(self) -> bool:
        return bool(self.console.is_terminal)

    def info(self, message: str) -> None:
        self.console.print(f"{self.prefix} {message}", markup=False, highlight=False)

    def write(self, text: str) -> None:
        self.console.out(text, end="", highlight=False)


class ProgressDisplay:
    """Stateful renderer for one engine progress stream."""

    def __init__(self, sink: ProgressSink) -> None:
        self.sink = sink
        self.aux: List[Dict[str, Any]] = []
        self._progress: Optional[Progress] = None
        self._tasks: Dict[str, TaskID] = {}

    def __enter__(self) -> "ProgressDisplay":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._tasks.clear()

    def handle(self, message: Any) -> None:
        """Render one decoded message, raising on engine-reported errors."""
        if not isinstance(message, dict):
            raise StreamDecodeError(f"Unexpected progress message: {message!r}")

        error_detail = message.get("errorDetail") or {}
        if error_detail or message.get("error"):
            text = error_detail.get("message") or message.get("error") or ""
            raise JSONMessageError(str(text).strip(), code=error_detail.get("code"))

        if "aux" in message:
            aux = message.get("aux")
            if isinstance(aux, dict):
                self.aux.append(aux)
            return

        stream = message.get("stream")
        if stream is not None:
            self.sink.write(str(stream))
            return

        status = message.get("status")
        if status is None:
            logger.debug("Ignoring progress message without payload: %s", message)
            return

        layer_id = message.get("id")
        detail = message.get("progressDetail") or {}
        if self.sink.is_terminal and layer_id and detail.get("total"):
            self._update_bar(layer_id, status, detail)
            return
        if detail and not self.sink.is_terminal:
            # Byte counters are noise off a terminal
            return
        self._print_status(layer_id, status, message.get("progress"))

    def _print_status(
        self, layer_id: Optional[str], status: str, progress: Optional[str]
    ) -> None:
        line = f"{layer_id}: {status}" if layer_id else status
        if progress and self.sink.is_terminal:
            line = f"{line} {progress}"
        self.sink.write(line + "\n")

    def _update_bar(self, layer_id: str, status: str, detail: Dict[str, Any]) -> None:
        if self._progress is None:
            self._progress = Progress(
                TextColumn("{task.description}"),
                BarColumn(),
                DownloadColumn(),
                console=self.sink.console,
                transient=True,
            )
            self._progress.start()
        description = f"{layer_id}: {status}"
        task_id = self._tasks.get(layer_id)
        if task_id is None:
            task_id = self._progress.add_task(description, total=detail.get("total"))
            self._tasks[layer_id] = task_id
        self._progress.update(
            task_id,
            description=description,
            completed=detail.get("current", 0),
            total=detail.get("total"),
        )
