"""Domain and ORM models."""

from .base import JsonModel
from .domain import CaseCleanupDetail, CaseRecord, CleanupRunResult

__all__ = [
    "JsonModel",
    "CaseRecord",
    "CaseCleanupDetail",
    "CleanupRunResult",
]
