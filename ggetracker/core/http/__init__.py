"""
Outbound HTTP clients and the retry policy their producers run under.
"""

from ggetracker.core.http.retry_policy import RetryPolicy, exponential_backoff, no_backoff
from ggetracker.core.http.upstream import UpstreamClient

__all__ = [
    "RetryPolicy",
    "UpstreamClient",
    "exponential_backoff",
    "no_backoff",
]
