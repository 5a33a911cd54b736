"""
Audit queue backed by a Redis stream.

Messages are JSON documents, base64-encoded and stored as one opaque ``body``
field per stream entry so that existing readers of the queue keep working.
Reading is a peek: entries are never removed by the application, only by the
stream's own retention (``max_length``).
"""
import base64
import binascii
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, List, Optional, Union
import redis
from pydantic import BaseModel
from .. import schemas
from ..errors import LoggingError, StorageError

logger = logging.getLogger(__name__)

DEFAULT_PEEK_COUNT = 30
MESSAGE_ID_PATTERN = re.compile(r"^\d+-\d+$")


def encode_message(message: Union[BaseModel, dict]) -> str:
    """Serialise a message to JSON, then base64-encode the JSON text."""
    if isinstance(message, BaseModel):
        text = message.model_dump_json(by_alias=True)
    else:
        text = json.dumps(message, default=str)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class AuditQueue:
    """
    Append-only audit message queue.

    Args:
        client: Redis client
        name: Stream key
        max_length: Approximate number of entries kept (None keeps everything)
    """

    def __init__(self, client: redis.Redis, name: str = "audit-queue", max_length: Optional[int] = None):
        self.client = client
        self.name = name
        self.max_length = max_length

    def append(self, message: Union[BaseModel, dict]) -> str:
        """
        Enqueue a message.

        Args:
            message: Pydantic model or JSON-serialisable dict

        Returns:
            The message identifier

        Raises:
            LoggingError: If the message could not be enqueued
        """
        body = encode_message(message)
        kwargs = {}
        if self.max_length:
            kwargs = {"maxlen": self.max_length, "approximate": True}
        try:
            message_id = self.client.xadd(self.name, {"body": body}, **kwargs)
        except redis.RedisError as e:
            raise LoggingError(f"Failed to append to queue '{self.name}'") from e
        return _text(message_id)

    def peek_recent(self, max_messages: int = DEFAULT_PEEK_COUNT) -> List[schemas.AuditLogEntry]:
        """
        Read up to ``max_messages`` of the oldest entries still in the queue.

        Returns:
            Decoded audit entries, oldest first
        """
        try:
            rows = self.client.xrange(self.name, min="-", max="+", count=max_messages)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read queue '{self.name}'") from e
        return [self.to_entry(message_id, fields) for message_id, fields in rows]

    def get(self, message_id: str) -> Optional[schemas.AuditLogEntry]:
        """
        Look up a single entry by its identifier.

        Returns:
            The entry, or None if it does not exist (or has rolled off)
        """
        if not MESSAGE_ID_PATTERN.match(message_id or ""):
            return None
        try:
            rows = self.client.xrange(self.name, min=message_id, max=message_id, count=1)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read queue '{self.name}'") from e
        if not rows:
            return None
        return self.to_entry(*rows[0])

    def to_entry(self, message_id, fields: dict) -> schemas.AuditLogEntry:
        message_id = _text(message_id)
        body = fields.get("body", fields.get(b"body", ""))
        raw = _text(body)
        try:
            text = base64.b64decode(raw, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            logger.warning(f"Message {message_id} in '{self.name}' is not base64; returning it as-is")
            text = raw
        try:
            payload = json.loads(text)
        except ValueError:
            payload = None
        if not isinstance(payload, dict):
            payload = None
        millis = int(message_id.split("-", 1)[0])
        return schemas.AuditLogEntry(
            message_id=message_id,
            insertion_time=datetime.fromtimestamp(millis / 1000, tz=timezone.utc),
            message_text=text,
            payload=payload,
        )
