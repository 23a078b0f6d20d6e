"""SQLite Explorer API service."""
