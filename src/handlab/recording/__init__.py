"""Durable per-block telemetry logging."""

from .event_logger import EventLogger, LogSession

__all__ = ["EventLogger", "LogSession"]
