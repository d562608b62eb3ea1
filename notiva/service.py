"""
Message operations composed from blob reads and writes.

Every operation is an independent sequence of round trips to the remote
store. Nothing is cached between requests and nothing is rolled back: if the
inbox write of a send succeeds and the audit log write fails, the message is
delivered without its log line.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from fastapi import Depends

from notiva import cipher
from notiva.exceptions import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from notiva.metrics import record_message_operation
from notiva.models import (
    EVENT_MESSAGE_READ,
    EVENT_MESSAGE_SENT,
    MessageRecord,
    append_line,
    append_record,
    create_record,
    format_audit_line,
    mark_read,
    parse_lines,
    records,
)
from notiva.storage import GitHubContentStore, get_store, inbox_path, log_path, probe_path
from notiva.utils import current_timestamp, epoch_millis, new_message_id

logger = logging.getLogger(__name__)

PROBE_CONTENT = "Connection test successful"


@dataclass(frozen=True)
class SentMessage:
    message_id: str
    encrypted: str
    timestamp: str


def _outcome(error: Exception) -> str:
    """Metric label for a failed operation."""
    if isinstance(error, ValidationError):
        return "validation_error"
    if isinstance(error, NotFoundError):
        return "not_found"
    if isinstance(error, ConflictError):
        return "conflict"
    if isinstance(error, ConfigurationError):
        return "config_error"
    if isinstance(error, StoreError):
        return "store_error"
    return "error"


def check_identifier(value: str) -> str:
    """
    Reject user identifiers that would escape their storage path segment.

    Raises:
        ValidationError: identifier contains a path separator, a URL delimiter
            (?, #, %) or a control character, or is a relative path component
    """
    if value in (".", "..") or any(c in "/\\?#%" or ord(c) < 32 or ord(c) == 127 for c in value):
        raise ValidationError(f"Invalid user identifier: {value!r}")
    return value


class MessageService:
    """
    Send, list and read messages stored in per-user inbox blobs.

    Args:
        store: Remote blob store client
    """

    def __init__(self, store: GitHubContentStore):
        self.store = store

    async def _read_text(self, path: str):
        blob = await self.store.fetch(path)
        if blob is None:
            return None, None
        return blob.text(), blob.revision

    async def _append_audit(self, username: str, line: str, commit_message: str) -> None:
        path = log_path(username)
        content, revision = await self._read_text(path)
        await self.store.put(path, append_line(content, line).encode("utf-8"), commit_message, revision)
        logger.debug(f"Audit line appended to {path}: {line}")

    async def send(self, from_user: Optional[str], to_user: Optional[str], message: Optional[str]) -> SentMessage:
        """
        Deliver a message into the recipient's inbox.

        Args:
            from_user: Sender identifier
            to_user: Recipient identifier
            message: Plaintext body

        Returns:
            SentMessage with the new id, ciphertext and timestamp

        Raises:
            ValidationError: a field is missing or an identifier is unusable
            ConflictError: inbox or log changed between fetch and write
            StoreError: remote failure
        """
        try:
            if not from_user or not to_user or not message:
                raise ValidationError("Missing required fields: from, to, message")
            check_identifier(to_user)

            message_id = new_message_id()
            timestamp = current_timestamp()
            encrypted = cipher.encrypt(message)
            record = create_record(from_user, to_user, encrypted, message_id, timestamp)

            path = inbox_path(to_user)
            content, revision = await self._read_text(path)
            await self.store.put(
                path,
                append_record(content, record).encode("utf-8"),
                f"New message for {to_user} from {from_user}",
                revision,
            )
            logger.info(f"Message {message_id} stored in inbox of {to_user}")

            await self._append_audit(
                to_user,
                format_audit_line(timestamp, EVENT_MESSAGE_SENT, from_user, to_user, message_id),
                f"Log entry for message {message_id}",
            )
        except Exception as e:
            record_message_operation("send", _outcome(e))
            raise

        record_message_operation("send", "ok")
        return SentMessage(message_id=message_id, encrypted=encrypted, timestamp=timestamp)

    async def list_messages(self, username: str) -> List[MessageRecord]:
        """
        Return every parsed record in the user's inbox, in file order.

        Malformed lines are left out of the result but stay in the blob.
        A user without an inbox gets an empty list.
        """
        try:
            check_identifier(username)
            content, _ = await self._read_text(inbox_path(username))
        except Exception as e:
            record_message_operation("list", _outcome(e))
            raise

        result = records(parse_lines(content))
        logger.info(f"Listed {len(result)} messages for {username}")
        record_message_operation("list", "ok")
        return result

    async def read_message(self, username: Optional[str], message_id: Optional[str]) -> MessageRecord:
        """
        Mark a message as read and return it with its plaintext.

        The decrypted flag is written back before the audit line, so it
        stays set even if the audit write fails.

        Args:
            username: Owner of the inbox
            message_id: Id of the message to read

        Returns:
            The record (with decrypted=True) plus a decryptedMessage field

        Raises:
            ValidationError: a field is missing
            NotFoundError: inbox absent or id not present (nothing is written)
            ConflictError: inbox or log changed between fetch and write
            StoreError: remote failure
        """
        try:
            if not username or not message_id:
                raise ValidationError("Missing required fields: username, messageId")
            check_identifier(username)

            path = inbox_path(username)
            content, revision = await self._read_text(path)
            if content is None:
                raise NotFoundError("No messages found")

            blob, found, record = mark_read(parse_lines(content), message_id)
            if not found:
                raise NotFoundError("Message not found")

            await self.store.put(path, blob.encode("utf-8"), f"Mark message {message_id} as read", revision)
            logger.info(f"Message {message_id} marked as read by {username}")

            await self._append_audit(
                username,
                format_audit_line(current_timestamp(), EVENT_MESSAGE_READ, record.get("from"), username, message_id),
                f"Log entry for reading message {message_id}",
            )
        except Exception as e:
            record_message_operation("read", _outcome(e))
            raise

        record_message_operation("read", "ok")
        return {**record, "decryptedMessage": cipher.decrypt(str(record.get("message") or ""))}

    async def test_connection(self) -> str:
        """
        Write a throwaway probe blob to prove the store accepts writes.

        Probe blobs are never cleaned up.
        """
        try:
            path = probe_path(epoch_millis())
            await self.store.put(path, PROBE_CONTENT.encode("utf-8"), "Connection test")
        except Exception as e:
            record_message_operation("test", _outcome(e))
            raise

        logger.info(f"Connection probe written to {path}")
        record_message_operation("test", "ok")
        return "GitHub connection successful"


def get_message_service(store: GitHubContentStore = Depends(get_store)) -> MessageService:
    return MessageService(store)
