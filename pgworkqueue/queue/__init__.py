"""
Queue module.
Contains the claim protocol and the worker-facing queue API.
"""

from pgworkqueue.queue.api import Queue
from pgworkqueue.queue.claim import ClaimProtocol

__all__ = [
    "Queue",
    "ClaimProtocol",
]
