"""
Flat file share for contract documents.

Files live directly in one directory per share; names are reduced to their
base name so callers cannot address anything outside the share.
"""
import logging
import os
from pathlib import Path
from typing import List, Optional
from ..errors import StorageError, ValidationError

logger = logging.getLogger(__name__)


class FileShare:
    """
    A named share backed by a local directory.

    Args:
        root: Directory holding all shares
        share_name: Name of this share (a sub-directory of ``root``)
    """

    def __init__(self, root: str, share_name: str = "retail-fileshare"):
        self.share_name = share_name
        self.directory = Path(root) / share_name

    def create_if_not_exists(self) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)

    def path_for(self, filename: str) -> Path:
        name = os.path.basename((filename or "").replace("\\", "/"))
        if not name or name in (".", ".."):
            raise ValidationError("A file name is required")
        return self.directory / name

    def upload(self, filename: str, data: bytes) -> str:
        """
        Store a file, replacing any file with the same name.

        Returns:
            The stored file name
        """
        path = self.path_for(filename)
        try:
            self.create_if_not_exists()
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Failed to upload file '{path.name}'") from e
        logger.info(f"Stored {path.name} in share '{self.share_name}' ({len(data)} bytes)")
        return path.name

    def list_files(self) -> List[str]:
        if not self.directory.is_dir():
            return []
        try:
            return sorted(p.name for p in self.directory.iterdir() if p.is_file())
        except OSError as e:
            raise StorageError(f"Failed to list files: {e}") from e

    def download(self, filename: str) -> Optional[bytes]:
        """
        Read a file from the share.

        Returns:
            File contents, or None if the file does not exist
        """
        path = self.path_for(filename)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as e:
            raise StorageError(f"Failed to download file '{path.name}'") from e

    def delete(self, filename: str) -> bool:
        path = self.path_for(filename)
        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            raise StorageError(f"Failed to delete file '{path.name}'") from e
        return True

    def exists(self, filename: str) -> bool:
        try:
            return self.path_for(filename).is_file()
        except ValidationError:
            return False
