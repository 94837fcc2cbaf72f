"""HTTP adapters.

Contains the httpx-based transport and the Apptivo API client that turns
classified responses into domain objects or typed errors.
"""
