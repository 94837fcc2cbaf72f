"""Domain Events.

Contains definitions for events raised around remote calls, configuration
fetches and session establishment.
"""
