"""
FastAPI service for the QA tracker.

Routers cover evaluations, disputes, question sets, statistics, users,
settings and the audit queue; see ``create_app``.
"""

from qa_tracker.api.app import create_app

__all__ = ["create_app"]
