"""Pipe catalog: persistence, file import and the PipeManager service."""

from datachef_api.catalog.pipe_manager import PipeDeletion
from datachef_api.catalog.pipe_manager import PipeManager

__all__ = [
    "PipeDeletion",
    "PipeManager",
]
