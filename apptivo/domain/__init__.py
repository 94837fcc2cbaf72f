"""Domain Layer: models, interfaces, events and exceptions.

Nothing in this package performs I/O. Infrastructure adapters implement the
interfaces defined here.
"""
