"""Scheduling & deduplication subsystem.

Exports the priority scheduler and in-flight registry used by the loader.
"""
from .core import (
    MAX_CONCURRENT,
    Priority,
    QueueItem,
    InFlightRegistry,
    PriorityScheduler,
)

__all__ = [
    "MAX_CONCURRENT",
    "Priority",
    "QueueItem",
    "InFlightRegistry",
    "PriorityScheduler",
]
