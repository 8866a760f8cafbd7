"""Data Access Objects package."""

from .base import BaseDAO
from .case_dao import CaseDAO
from .case_repository import CaseRepository

__all__ = [
    "BaseDAO",
    "CaseDAO",
    "CaseRepository",
]
