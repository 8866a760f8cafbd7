"""Case folder storage on the local filesystem.

Every case owns one directory at <cases_base_dir>/<owner_id>/<case_id>,
holding its case JSON, DOCX export and uploaded evidence. The path is a
pure function of (owner_id, case_id) so the cleanup sweep never needs a
lookup to find what to delete.
"""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

from pepper_cleanup.enums import FolderDeletionStatus

if TYPE_CHECKING:
    from pepper_cleanup.config import CleanupConfig

logger = logging.getLogger(__name__)

_UNSAFE_CASE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_case_id(case_id: str) -> str:
    """Map a case id to its folder name.

    Characters outside [A-Za-z0-9_-] become underscores.
    """
    sanitized = _UNSAFE_CASE_ID_CHARS.sub("_", (case_id or "").strip())
    if not sanitized:
        raise ValueError("case_id cannot be empty")
    return sanitized


def validate_owner_id(owner_id: str) -> str:
    """Validate an owner id for use as a directory name."""
    o = str(owner_id or "").strip()
    if not o:
        raise ValueError("owner_id cannot be empty")
    if "/" in o or "\\" in o or o in (".", ".."):
        raise ValueError(f"Invalid owner_id for path: {owner_id!r}")
    return o


class CaseFolderService:
    """Resolve, populate and delete per-case folders."""

    def __init__(self, config: "CleanupConfig") -> None:
        """Initialize with the configured cases root.

        Args:
            config: Application configuration (uses cases_base_dir).
        """
        self.config = config
        self._base = Path(config.cases_base_dir).expanduser()

    @property
    def base_dir(self) -> Path:
        return self._base

    def get_user_cases_dir(self, owner_id: str) -> Path:
        """Directory holding all case folders of one owner. Not created."""
        return self._base / validate_owner_id(owner_id)

    def get_case_folder(self, owner_id: str, case_id: str) -> Path:
        """Deterministic folder path for a case. Not created."""
        return self.get_user_cases_dir(owner_id) / sanitize_case_id(case_id)

    def ensure_case_folder(self, owner_id: str, case_id: str) -> Path:
        """Get the case folder, creating it on first use."""
        folder = self.get_case_folder(owner_id, case_id)
        if not folder.exists():
            folder.mkdir(parents=True, exist_ok=True)
            logger.info("Created case folder: %s", folder)
        return folder

    def save_file(
        self,
        owner_id: str,
        case_id: str,
        file_name: str,
        content: str | bytes,
    ) -> Path:
        """Write a file into a case folder.

        Args:
            owner_id: Owning user.
            case_id: Case identifier.
            file_name: Bare file name; path components are rejected.
            content: Text (written as UTF-8) or bytes.

        Returns:
            Path of the written file.
        """
        name = Path(file_name).name
        if not name or name != file_name:
            raise ValueError(f"Invalid file name: {file_name!r}")

        file_path = self.ensure_case_folder(owner_id, case_id) / name
        if isinstance(content, bytes):
            file_path.write_bytes(content)
        else:
            file_path.write_text(content, encoding="utf-8")

        logger.debug("Saved %s to case folder", file_path)
        return file_path

    def list_case_files(self, owner_id: str, case_id: str) -> list[Path]:
        """List files in a case folder, or [] if the folder does not exist."""
        folder = self.get_case_folder(owner_id, case_id)
        if not folder.is_dir():
            return []
        return sorted(p for p in folder.iterdir() if p.is_file())

    def delete_case_folder(self, owner_id: str, case_id: str) -> FolderDeletionStatus:
        """Recursively and permanently delete a case folder.

        A missing folder is a no-op success. Filesystem errors propagate
        so the caller can record them per case.

        Returns:
            DELETED if the folder was removed, ALREADY_ABSENT if it did not exist.

        Raises:
            OSError: If the folder exists but could not be removed.
        """
        folder = self.get_case_folder(owner_id, case_id)
        if not folder.exists():
            logger.debug("Case folder already absent: %s", folder)
            return FolderDeletionStatus.ALREADY_ABSENT

        shutil.rmtree(folder)
        logger.info("Deleted case folder: %s", folder)

        self._remove_empty_owner_dir(folder.parent)
        return FolderDeletionStatus.DELETED

    def _remove_empty_owner_dir(self, owner_dir: Path) -> None:
        try:
            owner_dir.rmdir()
            logger.debug("Removed empty owner directory: %s", owner_dir)
        except OSError:
            # Not empty, or already gone
            pass
