"""
Local filesystem access for backup directories.

Lists the files in a section's backup directory and deletes the ones the
retention policy discarded.
"""

import os
from pathlib import Path
from typing import List


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


class LocalStorage:
    """
    Handler for the backup directory of a section.
    """

    def __init__(self, base_path: str, create: bool = True):
        """
        Initialize local storage handler.

        Args:
            base_path: Directory holding the backup files
            create: Create the directory if it doesn't exist
        """
        self.base_path = Path(base_path)

        if create:
            try:
                self.base_path.mkdir(parents=True, exist_ok=True)
            except Exception as e:
                raise StorageError(f"Failed to create backup directory {self.base_path}: {e}")

    def list_files(self) -> List[str]:
        """
        List the file names in the backup directory.

        Returns:
            Sorted file names (directories are skipped); empty if the
            directory does not exist

        Raises:
            StorageError: If listing fails
        """
        if not self.base_path.exists():
            return []

        try:
            return sorted(
                entry.name for entry in self.base_path.iterdir()
                if entry.is_file()
            )
        except Exception as e:
            raise StorageError(f"Failed to list backup directory {self.base_path}: {e}")

    def delete(self, filename: str):
        """
        Delete a file from the backup directory.

        Args:
            filename: Name of the file to delete

        Raises:
            StorageError: If deletion fails
        """
        full_path = self.base_path / filename

        try:
            if full_path.exists():
                full_path.unlink()
        except PermissionError as e:
            raise StorageError(f"Permission denied deleting {full_path}: {e}")
        except Exception as e:
            raise StorageError(f"Failed to delete backup file: {e}")

    def get_full_path(self, filename: str) -> str:
        """
        Get full filesystem path of a file in the backup directory.

        Args:
            filename: File name

        Returns:
            Full filesystem path
        """
        return os.path.join(str(self.base_path), filename)
