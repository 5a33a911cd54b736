"""
Audit events written to the audit queue.

Every message has the same shape:
``{"Action": ..., "EntityType": ..., "Timestamp": ..., "Details": {...}}``.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_pascal
from .errors import LoggingError
from .storage.queue import AuditQueue

logger = logging.getLogger(__name__)


class AuditEvent(BaseModel):
    """
    A single audit log message.

    Attributes:
        action (str): What happened, e.g. "Customer Created" or "Error"
        entity_type (str): Customer, Product, Order, Contract...
        timestamp (datetime): When it happened (UTC)
        details (dict): Action-specific fields
    """
    action: str
    entity_type: str
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    details: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        alias_generator = to_pascal
        populate_by_name = True


class AuditLogger:
    """
    Writes audit events for one entity type.

    Failures to write are logged and swallowed; an audit problem never fails
    the operation being audited.
    """

    def __init__(self, queue: AuditQueue, entity_type: str):
        self.queue = queue
        self.entity_type = entity_type

    def log(self, action: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Append an audit event.

        Args:
            action: Action name
            details: Action-specific fields
        """
        event = AuditEvent(action=action, entity_type=self.entity_type, details=details or {})
        try:
            self.queue.append(event)
        except LoggingError as e:
            logger.error(f"Audit log write failed for '{action}' ({self.entity_type}): {e.__cause__ or e}")

    def log_error(self, operation: str, error: Exception) -> None:
        """
        Append an "Error" event describing a failed operation.

        Args:
            operation: Operation that failed, e.g. "CreateCustomer"
            error: The exception raised
        """
        cause = error.__cause__ or error
        self.log("Error", {"Operation": operation, "Error": str(cause)})
