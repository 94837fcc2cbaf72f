"""Domain models: credentials, configuration documents and record data."""
