"""HTTP routers package."""

from .case_cleanup_router import (
    CleanupResponse,
    CleanupRunSummary,
    CleanupStatusResponse,
    create_case_cleanup_router,
)

__all__ = [
    "create_case_cleanup_router",
    "CleanupResponse",
    "CleanupRunSummary",
    "CleanupStatusResponse",
]
