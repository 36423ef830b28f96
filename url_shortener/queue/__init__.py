"""
Analytics queue module for URL shortener.
Bounded, non-blocking hand-off of click events to the analytics worker.
"""

from .event_queue import EventQueue
from .models import AnalyticsEvent, EnqueueResult

__all__ = [
    "EventQueue",
    "AnalyticsEvent",
    "EnqueueResult",
]
