"""devloop — local development loop for component registries."""

__version__ = "0.1.0"
