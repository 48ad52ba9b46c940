"""Daily check-in backend."""

__version__ = "1.0.0"
