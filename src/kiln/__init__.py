"""kiln public API surface.

The build core is driven through ``Builder``; everything else is exposed for
callers that want to compose the components themselves.
"""

from .build import Builder, BuildSession, ContainerConfig
from .config import BuildSettings, load_config
from .dockerfile import Node
from .imagename import ImageName
from .version import __version__

__all__ = [
    "BuildSession",
    "BuildSettings",
    "Builder",
    "ContainerConfig",
    "ImageName",
    "Node",
    "__version__",
    "load_config",
]
