"""
Error taxonomy for the Retail Admin service.

Each error carries the HTTP status code it maps to at the API boundary.
"""


class RetailError(Exception):
    """Base class for service errors."""
    status_code = 500


class ValidationError(RetailError):
    """Bad or missing input, or a business rule violation."""
    status_code = 400


class NotFoundError(RetailError):
    """A requested entity or file does not exist."""
    status_code = 404


class StorageError(RetailError):
    """A backing store was unavailable or rejected the operation."""
    status_code = 500


class LoggingError(RetailError):
    """An audit entry could not be written. Never surfaced to callers."""
    status_code = 500
