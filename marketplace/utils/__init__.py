"""
Utility helpers shared across services.
"""
from marketplace.utils.retry import is_transient_error, retry_with_backoff

__all__ = [
    "is_transient_error",
    "retry_with_backoff",
]
