"""CLI command modules."""

from . import config, export

__all__ = [
    "config",
    "export",
]
