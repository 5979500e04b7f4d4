"""Application service container."""

from qa_tracker.services.container import QATracker, build_channels

__all__ = ["QATracker", "build_channels"]
