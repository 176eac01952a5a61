"""Keeps kiln's private files out of the build context."""

from __future__ import annotations

import logging
from typing import List

from .session import BuildSession

__all__ = ["HEADER", "check_dockerignore", "required_lines"]

logger = logging.getLogger(__name__)

HEADER = "# This file is automatically generated by kiln, please keep it"


def required_lines(session: BuildSession) -> List[str]:
    return [
        ".dockerignore",
        f"{session.tmp_prefix}*",
        session.build_file_relative(),
    ]


def check_dockerignore(session: BuildSession) -> int:
    """Create or extend ``.dockerignore`` in the context directory.

    Existing lines are kept as they are; only missing required entries are
    appended. Returns the number of lines added.
    """
    path = session.context_dir / ".dockerignore"
    missing = required_lines(session)

    if not path.exists():
        session.sink.info("Create .dockerignore in context directory")
        path.write_text("\n".join([HEADER, *missing]) + "\n", encoding="utf-8")
        return len(missing)

    current = path.read_text(encoding="utf-8").splitlines()
    for line in current:
        if line == ".git":
            session.git_ignored = True
        if line in missing:
            missing.remove(line)

    if not missing:
        return 0

    session.sink.info(f"Add {len(missing)} lines to .dockerignore")
    logger.debug("Appending %s to %s", missing, path)
    path.write_text("\n".join([*current, *missing]) + "\n", encoding="utf-8")
    return len(missing)
