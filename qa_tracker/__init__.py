"""QA evaluation tracker: evaluations, disputes, and QA statistics."""

__version__ = "0.1.0"
