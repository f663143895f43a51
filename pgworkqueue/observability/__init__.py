"""
Observability module.
Contains logging and tracing setup.
"""

from pgworkqueue.observability.logging import (
    bind_context,
    clear_context,
    job_context,
    setup_logging,
)
from pgworkqueue.observability.tracing import (
    get_tracer,
    instrument_sqlalchemy,
    setup_tracing,
)

__all__ = [
    "setup_logging",
    "bind_context",
    "clear_context",
    "job_context",
    "setup_tracing",
    "get_tracer",
    "instrument_sqlalchemy",
]
