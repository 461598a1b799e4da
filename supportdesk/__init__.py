"""Customer-support ticketing service."""

__version__ = "0.1.0"
