"""Engine transport: the Docker client facade and progress streaming."""

from .client import EngineClient
from .progress import ProgressDisplay, ProgressSink
from .streaming import stream_engine_call

__all__ = ["EngineClient", "ProgressDisplay", "ProgressSink", "stream_engine_call"]
