"""Activity log for auditing engine writes."""

from qa_tracker.activity.log import ActivityLog, ActivityLogEntry

__all__ = ["ActivityLog", "ActivityLogEntry"]
