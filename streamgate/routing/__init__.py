"""
streamgate - Routing Module

Outbound call scheduling: a FIFO, single-flight, rate-limited request queue
per upstream host.
"""

from .queue import RequestQueue, QueueTask, DEFAULT_MIN_INTERVAL

__all__ = [
    "RequestQueue",
    "QueueTask",
    "DEFAULT_MIN_INTERVAL",
]
