"""
D4 Orchestration - Audit run state machine

Coordinates discovery, page scanning, diagnostics, vision, scoring,
persistence, summary and notification for one audit run.
"""

from .orchestrator import AuditOrchestrator
from .pool import WorkerPool
from .progress import ProgressSnapshot, ProgressTracker

__all__ = ["AuditOrchestrator", "ProgressSnapshot", "ProgressTracker", "WorkerPool"]
