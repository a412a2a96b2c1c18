"""Isolation runtimes the launcher can drive."""

from .base import OutputSink, SessionHandle, SessionInfo, SessionRuntime

__all__ = ["OutputSink", "SessionHandle", "SessionInfo", "SessionRuntime"]
