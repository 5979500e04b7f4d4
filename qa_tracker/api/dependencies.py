"""
Dependency injection for FastAPI endpoints.
"""

from qa_tracker.services.container import QATracker

# Global service container (initialized on first request)
_tracker: QATracker | None = None


async def get_tracker() -> QATracker:
    """
    Get the service container.

    Creates a singleton container from settings, opening the configured
    record store on first use.
    """
    global _tracker

    if _tracker is None:
        _tracker = await QATracker.from_settings()

    return _tracker


def set_tracker(tracker: QATracker | None) -> None:
    """Install a prebuilt container (used by the CLI and tests)."""
    global _tracker
    _tracker = tracker


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _tracker

    if _tracker is not None:
        await _tracker.close()
        _tracker = None
