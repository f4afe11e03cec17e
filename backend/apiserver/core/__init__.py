"""Configuration and data store connection."""
