"""API Resilience Implementations.

Contains the retry service, backoff calculation, cancellation token and the
client-side record of the server's rate limit quota.
Bounded Context: API Resilience
"""
