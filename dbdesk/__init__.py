"""Terminal client for PostgreSQL and MySQL connection profiles."""

__version__ = "0.1.0"
