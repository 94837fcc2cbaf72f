"""API Resilience Implementations.

Contains services for throttling outgoing calls, retrying transient failures
and honoring caller cancellation.
Bounded Context: API Resilience
"""
