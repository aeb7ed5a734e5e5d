"""Read/write MySQL connection pools with a chainable query builder."""

__version__ = "0.1.0"
__all__ = ["builder", "config", "logger", "pool"]