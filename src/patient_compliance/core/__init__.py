"""Core infrastructure: errors and database session management."""
