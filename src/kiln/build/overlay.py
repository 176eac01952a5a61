"""Scoped, reversible edits to the session's configuration draft."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional

from .container_config import ContainerConfig
from .session import BuildSession

__all__ = ["add_labels", "temporary_cmd", "temporary_config"]


@contextmanager
def temporary_cmd(
    session: BuildSession, cmd: Optional[List[str]]
) -> Iterator[ContainerConfig]:
    """Swap the draft's command for the duration of the block."""
    original = session.config.cmd
    session.config.cmd = cmd
    try:
        yield session.config
    finally:
        session.config.cmd = original


@contextmanager
def temporary_config(
    session: BuildSession, mutate: Callable[[ContainerConfig], None]
) -> Iterator[ContainerConfig]:
    """Apply ``mutate`` to the draft and restore a full snapshot afterwards."""
    snapshot = session.config.copy()
    try:
        mutate(session.config)
        yield session.config
    finally:
        session.config = snapshot


def add_labels(session: BuildSession, labels: Dict[str, str]) -> None:
    if session.config.labels is None:
        session.config.labels = {}
    session.config.labels.update(labels)
