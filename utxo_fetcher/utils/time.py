"""Time utility functions for block timestamps."""

from datetime import datetime, timezone
from typing import Union


def to_utc_timestamp(timestamp: Union[int, float, datetime]) -> datetime:
    """Convert various timestamp formats to UTC datetime."""
    if isinstance(timestamp, datetime):
        if timestamp.tzinfo is None:
            return timestamp.replace(tzinfo=timezone.utc)
        return timestamp.astimezone(timezone.utc)

    elif isinstance(timestamp, (int, float)):
        # Unix timestamp
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)

    else:
        raise ValueError(f"Unsupported timestamp type: {type(timestamp)}")


def format_block_time(block_time: Union[int, datetime]) -> str:
    """Format a block or coin time as ``YYYY-mm-dd HH:MM:SS`` in UTC."""
    return to_utc_timestamp(block_time).strftime("%Y-%m-%d %H:%M:%S")
