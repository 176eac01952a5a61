"""Build orchestration: session state and the components acting on it."""

from .builder import Builder
from .cache import CacheProber
from .container_config import ContainerConfig, compare_configs
from .driver import BuildDriver
from .session import BuildSession

__all__ = [
    "BuildDriver",
    "BuildSession",
    "Builder",
    "CacheProber",
    "ContainerConfig",
    "compare_configs",
]
