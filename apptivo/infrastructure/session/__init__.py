"""Session key lifecycle for endpoints that require a logged-in session."""
