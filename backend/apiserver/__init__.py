"""API server with directory-discovered route modules."""

__version__ = "1.0.0"
