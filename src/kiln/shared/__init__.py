"""Shared data types used across the engine and build layers."""

from .types import AuthConfig, Mount

__all__ = ["AuthConfig", "Mount"]
