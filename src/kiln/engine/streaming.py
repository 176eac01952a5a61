"""Pipe-and-progress protocol shared by build, pull and push.

The Docker SDK hands back a blocking generator of decoded JSON messages. The
generator is drained on an executor thread which feeds an asyncio queue, while
the coordinating task decodes and renders each message as it arrives. Both
ends run concurrently; the caller awaits the decoder first and then the engine
call itself.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..exceptions import StreamDecodeError
from .progress import ProgressDisplay, ProgressSink

__all__ = ["stream_engine_call"]

logger = logging.getLogger(__name__)

_EOF = object()


def _consume_result(future: "asyncio.Future[Any]") -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.debug("Engine call ended after stream abort: %s", future.exception())


async def stream_engine_call(
    call: Callable[[], Iterable[Dict[str, Any]]],
    sink: ProgressSink,
    capture: Optional[List[Dict[str, Any]]] = None,
) -> List[Dict[str, Any]]:
    """Run a streaming engine call, rendering its progress on ``sink``.

    Args:
        call: Zero-argument callable performing the blocking SDK request and
            returning its decoded message iterator.
        sink: Where progress is displayed.
        capture: Optional list receiving every decoded message.

    Returns:
        The ``aux`` payloads the engine attached to the stream.

    Raises:
        StreamDecodeError: The stream could not be decoded or reported an error.
        Exception: Whatever the engine call itself raised.
    """
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[Any]" = asyncio.Queue()
    stop = threading.Event()

    def post(item: Any) -> None:
        try:
            loop.call_soon_threadsafe(queue.put_nowait, item)
        except RuntimeError:
            logger.debug("Event loop closed; dropping engine stream")
            stop.set()

    def produce() -> None:
        try:
            for message in call():
                if stop.is_set():
                    break
                post(message)
        except ValueError as exc:
            raise StreamDecodeError(f"Malformed engine message: {exc}") from exc
        finally:
            post(_EOF)

    producer = loop.run_in_executor(None, produce)

    display = ProgressDisplay(sink)
    try:
        while True:
            message = await queue.get()
            if message is _EOF:
                break
            if capture is not None:
                capture.append(message)
            display.handle(message)
    except BaseException:
        stop.set()
        producer.add_done_callback(_consume_result)
        raise
    finally:
        display.close()

    await producer
    return display.aux
