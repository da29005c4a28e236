"""Multi-region endpoint uptime checks over durable streams."""

__version__ = "0.1.0"
