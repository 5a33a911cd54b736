"""
Contract documents kept in the file share.
"""
import logging
import os
from typing import Iterable, List
from ..audit import AuditLogger
from ..errors import NotFoundError, StorageError, ValidationError
from ..storage.fileshare import FileShare

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".pdf", ".docx", ".doc", ".txt")
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB


class ContractService:
    """
    Args:
        share: File share holding the contracts
        audit: Audit logger for the "Contract" entity type
        allowed_extensions: Accepted file extensions (lower-case, with dot)
        max_file_size: Largest accepted upload in bytes
    """

    def __init__(self, share: FileShare, audit: AuditLogger,
                 allowed_extensions: Iterable[str] = ALLOWED_EXTENSIONS,
                 max_file_size: int = MAX_FILE_SIZE):
        self.share = share
        self.audit = audit
        self.allowed_extensions = tuple(allowed_extensions)
        self.max_file_size = max_file_size

    @property
    def share_name(self) -> str:
        return self.share.share_name

    def validate_upload(self, filename: str, data: bytes) -> str:
        """
        Check a contract upload.

        Returns:
            The lower-cased file extension
        """
        if not filename or not data:
            raise ValidationError("Please select a file to upload.")
        extension = os.path.splitext(filename)[1].lower()
        if extension not in self.allowed_extensions:
            allowed = ", ".join(ext.lstrip(".") for ext in self.allowed_extensions)
            raise ValidationError(f"Please upload a valid contract file ({allowed}).")
        if len(data) > self.max_file_size:
            raise ValidationError(f"File size cannot exceed {self.max_file_size // (1024 * 1024)}MB.")
        return extension

    def upload(self, filename: str, data: bytes) -> str:
        """
        Store a contract.

        Returns:
            The stored file name
        """
        extension = self.validate_upload(filename, data)
        try:
            stored = self.share.upload(filename, data)
        except StorageError as e:
            self.audit.log_error("UploadContract", e)
            raise
        logger.info(f"Contract uploaded: {stored}")
        self.audit.log("Contract Uploaded", {"FileName": stored, "FileSize": len(data), "FileType": extension})
        return stored

    def list_files(self) -> List[str]:
        return self.share.list_files()

    def download(self, filename: str) -> bytes:
        """
        Read a contract.

        Raises:
            NotFoundError: If the file does not exist
        """
        data = self.share.download(filename)
        if data is None:
            raise NotFoundError(f"File '{os.path.basename(filename)}' not found.")
        return data

    def delete(self, filename: str) -> bool:
        deleted = self.share.delete(filename)
        if deleted:
            logger.info(f"Contract deleted: {filename}")
            self.audit.log("Contract Deleted", {"FileName": os.path.basename(filename)})
        return deleted

    def exists(self, filename: str) -> bool:
        return self.share.exists(filename)
