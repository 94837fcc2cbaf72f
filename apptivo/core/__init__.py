"""Core Application Layer: label resolution services and the controller facade.

Connects the domain layer with the infrastructure layer. Services here are
pure reads over fetched configuration; the controller wires them to the
cache, session and resilience infrastructure.
"""
