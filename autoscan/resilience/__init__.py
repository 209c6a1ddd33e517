"""
Resilience components for the auto-scan loop.
"""

from .checkpoint_store import CheckpointStore, CheckpointRead, CheckpointStatus
from .retry_handler import RetryHandler
from .circuit_breaker import CircuitBreaker

__all__ = [
    'CheckpointStore',
    'CheckpointRead',
    'CheckpointStatus',
    'RetryHandler',
    'CircuitBreaker'
]
