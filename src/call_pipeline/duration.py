# src/call_pipeline/duration.py

import logging
from datetime import datetime, timezone
from typing import Optional


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing 'Z' and explicit offsets. Naive timestamps are taken as UTC.

    Returns:
        UTC datetime, or None when the value is missing or not a parseable string
    """
    if value is None or not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    if value[-1] in ('Z', 'z'):
        value = value[:-1] + '+00:00'

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def calculate_duration(start_time: Optional[str], end_time: Optional[str]) -> Optional[int]:
    """
    Calculate call duration in whole minutes between two ISO-8601 timestamps.

    Partial minutes are truncated. Returns None when either timestamp is missing
    or unparseable, or when the call ends before it starts.

    Args:
        start_time: Call start timestamp
        end_time: Call end timestamp

    Returns:
        Duration in minutes, or None
    """
    logger = logging.getLogger('callpipeline.transform')

    if start_time is None or end_time is None:
        logger.debug(f"Duration unavailable - start: {start_time}, end: {end_time}")
        return None

    start = parse_timestamp(start_time)
    end = parse_timestamp(end_time)

    if start is None or end is None:
        logger.warning(f"⚠️ Unparseable call timestamps - start: {start_time!r}, end: {end_time!r}")
        return None

    if end < start:
        logger.warning(f"⚠️ Call ends before it starts - start: {start_time}, end: {end_time}")
        return None

    return int((end - start).total_seconds() // 60)
