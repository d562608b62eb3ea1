"""
Inbox log format.

An inbox blob holds one JSON-encoded message record per line:

    {"id":"MSG_...","from":"alice","to":"bob","message":"Svool","timestamp":"...","decrypted":false}

Lines that do not decode to a JSON object are kept as RawLine and written
back verbatim, so a rewrite never loses data it does not understand.

For the audit log format, see format_audit_line().
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

# A parsed record; extra keys written by other tools are kept as-is
MessageRecord = Dict[str, Any]

EVENT_MESSAGE_SENT = "MESSAGE_SENT"
EVENT_MESSAGE_READ = "MESSAGE_READ"


@dataclass(frozen=True)
class RawLine:
    """A stored line that could not be decoded into a record."""
    text: str


InboxEntry = Union[MessageRecord, RawLine]


def create_record(
    from_user: str,
    to_user: str,
    ciphertext: str,
    message_id: str,
    timestamp: str
) -> MessageRecord:
    """Build a new, unread message record."""
    return {
        "id": message_id,
        "from": from_user,
        "to": to_user,
        "message": ciphertext,
        "timestamp": timestamp,
        "decrypted": False,
    }


def encode_record(record: MessageRecord) -> str:
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False)


def parse_lines(blob: Optional[str]) -> List[InboxEntry]:
    """
    Split an inbox blob into records and raw lines, in file order.

    Args:
        blob: Inbox content, may be None or empty

    Returns:
        List of MessageRecord dicts and RawLine entries
    """
    if not blob:
        return []

    entries: List[InboxEntry] = []
    for line in blob.strip().split("\n"):
        if not line:
            continue
        try:
            decoded = json.loads(line)
        except ValueError:
            entries.append(RawLine(line))
            continue
        if isinstance(decoded, dict):
            entries.append(decoded)
        else:
            entries.append(RawLine(line))
    return entries


def serialize_lines(entries: List[InboxEntry]) -> str:
    lines = [e.text if isinstance(e, RawLine) else encode_record(e) for e in entries]
    return "".join(f"{line}\n" for line in lines)


def records(entries: List[InboxEntry]) -> List[MessageRecord]:
    """Only the parsed records, raw lines excluded."""
    return [e for e in entries if not isinstance(e, RawLine)]


def append_line(blob: Optional[str], line: str) -> str:
    """Append one newline-terminated line after the existing content."""
    blob = blob or ""
    if blob and not blob.endswith("\n"):
        blob += "\n"
    return f"{blob}{line}\n"


def append_record(blob: Optional[str], record: MessageRecord) -> str:
    return append_line(blob, encode_record(record))


def mark_read(
    entries: List[InboxEntry],
    target_id: str
) -> Tuple[str, bool, Optional[MessageRecord]]:
    """
    Flag the first record with the given id as decrypted.

    Args:
        entries: Parsed inbox entries
        target_id: Message id to mark

    Returns:
        Tuple of (blob, found, record)
        - blob: the full inbox re-serialized, including untouched raw lines
        - found: whether a record with target_id exists
        - record: the matching record (already flagged), or None
    """
    target: Optional[MessageRecord] = None
    updated: List[InboxEntry] = []

    for entry in entries:
        if target is None and not isinstance(entry, RawLine) and entry.get("id") == target_id:
            entry = {**entry, "decrypted": True}
            target = entry
        updated.append(entry)

    return serialize_lines(updated), target is not None, target


def format_audit_line(
    timestamp: str,
    event: str,
    from_user: str,
    to_user: str,
    message_id: str
) -> str:
    """Render an audit log line: [<ts>] <EVENT>: <from> -> <to> (ID: <id>)"""
    return f"[{timestamp}] {event}: {from_user} -> {to_user} (ID: {message_id})"
