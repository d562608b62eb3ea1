"""
Utility functions for message identifiers and timestamps.
"""

import logging
import random
import string
import time
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

MESSAGE_ID_PREFIX = "MSG"
MESSAGE_ID_SUFFIX_LENGTH = 9
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_message_id() -> str:
    """
    Generate a message identifier of the form MSG_<epoch-ms>_<suffix>.

    Uniqueness is probabilistic (clock plus a short random suffix), which is
    good enough for a single inbox but not a global guarantee.

    Returns:
        New message identifier
    """
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=MESSAGE_ID_SUFFIX_LENGTH))
    message_id = f"{MESSAGE_ID_PREFIX}_{epoch_millis()}_{suffix}"
    logger.debug(f"Generated message id: {message_id}")
    return message_id


def current_timestamp() -> str:
    """Current UTC time as YYYY-MM-DD HH:MM:SS."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)
