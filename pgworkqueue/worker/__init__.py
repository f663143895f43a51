"""
Worker module.
Contains the polling worker and handler loading.
"""

from pgworkqueue.worker.main import Worker, run

__all__ = ["Worker", "run"]
