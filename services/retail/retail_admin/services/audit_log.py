"""
Reading and writing the audit log.

Entries are read with a non-destructive peek of the queue; filtering happens
in memory over that window.
"""
import csv
import io
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from .. import schemas
from ..audit import AuditEvent
from ..errors import LoggingError, StorageError
from ..storage.queue import DEFAULT_PEEK_COUNT, AuditQueue

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


class AuditLogService:
    """
    Args:
        queue: The audit queue
        max_messages: Size of the window returned by a peek
    """

    def __init__(self, queue: AuditQueue, max_messages: int = DEFAULT_PEEK_COUNT):
        self.queue = queue
        self.max_messages = max_messages

    def recent_entries(self) -> List[schemas.AuditLogEntry]:
        """Up to ``max_messages`` entries, oldest first. Nothing is dequeued."""
        return self.queue.peek_recent(self.max_messages)

    def get_entry(self, message_id: str) -> Optional[schemas.AuditLogEntry]:
        return self.queue.get(message_id)

    def send(self, action: Any, entity_type: Any, details: Any = None) -> str:
        """
        Append a caller-supplied audit event.

        Unlike internal audit writes, a failure here is reported to the caller.

        Returns:
            The message identifier
        """
        if not isinstance(details, dict):
            details = {"Value": details} if details is not None else {}
        event = AuditEvent(action=str(action), entity_type=str(entity_type), details=details)
        try:
            return self.queue.append(event)
        except LoggingError as e:
            raise StorageError("Failed to send log entry") from e

    def by_entity_type(self, entity_type: str) -> List[schemas.AuditLogEntry]:
        return [e for e in self.recent_entries() if self._field(e, "EntityType") == entity_type.lower()]

    def by_action(self, action: str) -> List[schemas.AuditLogEntry]:
        return [e for e in self.recent_entries() if self._field(e, "Action") == action.lower()]

    def by_date_range(self, start_date: datetime, end_date: datetime) -> List[schemas.AuditLogEntry]:
        start, end = _as_utc(start_date), _as_utc(end_date)
        return [
            e for e in self.recent_entries()
            if e.insertion_time is not None and start <= e.insertion_time <= end
        ]

    def export_csv(self, entries: Optional[List[schemas.AuditLogEntry]] = None) -> str:
        """
        Render entries as CSV with columns MessageId, InsertionTime, MessageText.
        """
        entries = self.recent_entries() if entries is None else entries
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(["MessageId", "InsertionTime", "MessageText"])
        for entry in entries:
            writer.writerow([
                entry.message_id,
                entry.insertion_time.isoformat() if entry.insertion_time else "",
                entry.message_text,
            ])
        return output.getvalue()

    def export_json(self, entries: Optional[List[schemas.AuditLogEntry]] = None) -> str:
        entries = self.recent_entries() if entries is None else entries
        return json.dumps([e.model_dump(mode="json", by_alias=True) for e in entries], indent=2)

    @staticmethod
    def _field(entry: schemas.AuditLogEntry, key: str) -> Optional[str]:
        payload: Dict[str, Any] = entry.payload or {}
        value = payload.get(key)
        return str(value).lower() if value is not None else None
