"""apptivo: client-side integration layer for the Apptivo CRM.

Caches per-account object configuration, resolves human-readable field and
section labels into attribute identifiers, and wraps every outbound API call
with session handling, throttling and bounded retries.
"""

__version__ = "0.3.0"
