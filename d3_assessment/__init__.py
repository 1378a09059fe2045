"""
D3 Assessment - Issue model and page analyzers

Static HTML/security checks, axe-core accessibility, AI vision review of
screenshots and audit summaries.
"""

from .types import BoundingBox, DeviceType, Issue, IssueCategory, IssueSeverity, IssueSource, make_issue

__all__ = [
    "BoundingBox",
    "DeviceType",
    "Issue",
    "IssueCategory",
    "IssueSeverity",
    "IssueSource",
    "make_issue",
]
