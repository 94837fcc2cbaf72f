"""Configuration cache.

Holds fetched application configuration documents for the lifetime of an
ApptivoController, with single-flight population per app id.
Bounded Context: Cache Management
"""
