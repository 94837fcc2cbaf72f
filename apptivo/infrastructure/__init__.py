"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the Apptivo HTTP API,
configuration files, the console) by implementing the interfaces defined in
the domain layer. Also holds the caches and the resilience services.
"""
