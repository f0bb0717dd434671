"""Monitoring module: structured logging setup."""

from bike_demand.monitoring.logging import setup_logging, get_logger

__all__ = [
    "setup_logging",
    "get_logger",
]
