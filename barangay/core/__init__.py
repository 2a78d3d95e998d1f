"""Core infrastructure: settings, logging, database, sessions, middleware."""
