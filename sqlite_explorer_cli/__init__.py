"""SQLite Explorer CLI - command line client for the SQLite Explorer API."""

__version__ = "0.1.0"
