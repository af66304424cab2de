"""Execution orchestrator and its single execution slot."""

from datachef_api.execution.runner import ExecutionOrchestrator
from datachef_api.execution.slot import ExecutionSlot

__all__ = [
    "ExecutionOrchestrator",
    "ExecutionSlot",
]
