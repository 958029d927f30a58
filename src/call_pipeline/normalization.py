# src/call_pipeline/normalization.py

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from .config import KNOWN_SOURCES
from .duration import calculate_duration, parse_timestamp
from .schema import CALL_RECORD_FIELD_MAP


def get_source_key(source: Optional[str]) -> Optional[str]:
    """Lowercase routing key for a source system"""
    if not source or not isinstance(source, str):
        return None
    return source.strip().lower() or None


def normalize_source(source: Optional[str]) -> Optional[str]:
    """
    Normalize a source system name to its canonical casing.

    Known sources are matched case-insensitively ('TEAMS' -> 'Teams').
    Unknown sources are kept as given, stripped of whitespace.
    """
    if not source or not isinstance(source, str):
        return source

    source = source.strip()
    return KNOWN_SOURCES.get(source.lower(), source)


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email address to lowercase.

    Args:
        email: Email address to normalize

    Returns:
        Lowercase email address or the input unchanged if None/empty/not a string
    """
    if not email or not isinstance(email, str):
        return email

    email = email.strip()
    if not email:
        return email

    if '@' not in email:
        logging.getLogger('callpipeline.normalization').debug(f"Participant is not an email address: {email}")

    return email.lower()


def normalize_participants(participants: Any) -> List[str]:
    """Normalize participant identifiers, keeping order and dropping empty entries"""
    if not isinstance(participants, list):
        return []

    normalized = []
    for participant in participants:
        value = normalize_email(participant)
        if isinstance(value, str) and value:
            normalized.append(value)
    return normalized


def normalize_timestamp(value: Optional[str]) -> Optional[str]:
    """Normalize an ISO-8601 timestamp to UTC with a 'Z' suffix"""
    parsed = parse_timestamp(value)
    if parsed is None:
        if value:
            logging.getLogger('callpipeline.normalization').warning(f"Failed to normalize timestamp '{value}'")
        return None
    if parsed.microsecond:
        return parsed.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return parsed.strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_now() -> str:
    """Current UTC time in the pipeline's timestamp format"""
    return datetime.utcnow().isoformat() + "Z"


def is_normalized(record: Dict[str, Any]) -> bool:
    """True when the record already went through the transform stage"""
    return bool(record.get('transformed_at')) and 'call_id' in record


def normalize_call_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the normalized (snake_case) call record from an incoming call record.

    Computes duration_minutes from the original start/end timestamps.
    """
    fields = {name: record.get(incoming) for name, incoming in CALL_RECORD_FIELD_MAP.items()}

    call_id = fields['call_id']
    source = normalize_source(fields['source'])
    participants = normalize_participants(fields['participants'])

    return {
        "call_id": call_id.strip() if isinstance(call_id, str) else call_id,
        "source": source,
        "source_key": get_source_key(source),
        "start_time": normalize_timestamp(fields['start_time']),
        "end_time": normalize_timestamp(fields['end_time']),
        "duration_minutes": calculate_duration(fields['start_time'], fields['end_time']),
        "participants": participants,
        "participant_count": len(participants),
        "recording": fields['recording'] if isinstance(fields['recording'], bool) else False,
        "ingested_at": normalize_timestamp(fields['ingested_at']),
        "transformed_at": utc_now(),
    }


def validate_normalization(record: Dict[str, Any]) -> list:
    """
    Validate that all fields requiring normalization are properly normalized.

    Args:
        record: Normalized call record

    Returns:
        List of validation errors (empty if all good)
    """
    logger = logging.getLogger('callpipeline.normalization')
    errors = []

    source = record.get('source')
    if isinstance(source, str) and source.lower() in KNOWN_SOURCES and source != KNOWN_SOURCES[source.lower()]:
        errors.append(f"Field 'source' not normalized: '{source}' should be '{KNOWN_SOURCES[source.lower()]}'")

    source_key = record.get('source_key')
    if isinstance(source_key, str) and source_key != source_key.lower():
        errors.append(f"Field 'source_key' not normalized: '{source_key}' should be '{source_key.lower()}'")

    for participant in record.get('participants') or []:
        if isinstance(participant, str) and participant != participant.strip().lower():
            errors.append(f"Participant not normalized: '{participant}' should be '{participant.strip().lower()}'")

    for field_name in ('start_time', 'end_time', 'ingested_at', 'transformed_at'):
        value = record.get(field_name)
        if isinstance(value, str) and not value.endswith('Z'):
            errors.append(f"Timestamp field '{field_name}' not normalized to UTC: '{value}'")

    if errors and logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Normalization validation errors for call {record.get('call_id')}: {errors}")

    return errors
