# src/call_pipeline/validation.py

import json
import logging
from typing import Any, Dict, List, Union

from .duration import parse_timestamp


class CallRecordValidationError(ValueError):
    """
    Raised when an incoming call record is malformed.

    Attributes:
        errors: List of individual validation problems
    """

    def __init__(self, message: str, errors: List[str] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or [message]


def parse_call_payload(payload: Union[str, bytes, Dict[str, Any], None]) -> Dict[str, Any]:
    """
    Parse a call record payload (JSON text, bytes or an already decoded dict).

    Raises:
        CallRecordValidationError: if the payload is empty, not JSON, or not a JSON object
    """
    if isinstance(payload, dict):
        return payload

    if isinstance(payload, bytes):
        try:
            payload = payload.decode('utf-8')
        except UnicodeDecodeError as e:
            raise CallRecordValidationError(f"Call record is not valid UTF-8: {e}") from e

    if payload is None or not str(payload).strip():
        raise CallRecordValidationError("Empty call record payload")

    try:
        record = json.loads(payload)
    except (TypeError, ValueError) as e:
        raise CallRecordValidationError(f"Malformed JSON call record: {e}") from e

    if not isinstance(record, dict):
        raise CallRecordValidationError(f"Call record must be a JSON object, got {type(record).__name__}")

    return record


def require_call_id(record: Dict[str, Any]) -> str:
    """Return the record's callId or raise if it is missing"""
    call_id = record.get('callId')
    if not isinstance(call_id, str) or not call_id.strip():
        raise CallRecordValidationError("Missing callId in call record")
    return call_id


def validate_call_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate an incoming call record, collecting every problem found.

    Returns:
        The record, unchanged

    Raises:
        CallRecordValidationError: listing all validation errors
    """
    logger = logging.getLogger('callpipeline.ingest')
    errors = []

    if not isinstance(record, dict):
        raise CallRecordValidationError("Call record must be a JSON object")

    call_id = record.get('callId')
    if not isinstance(call_id, str) or not call_id.strip():
        errors.append("callId is required and must be a non-empty string")

    if 'source' in record:
        source = record['source']
        if not isinstance(source, str) or not source.strip():
            errors.append("source must be a non-empty string")

    for field_name in ('startTime', 'endTime'):
        value = record.get(field_name)
        if value is None:
            continue
        if not isinstance(value, str) or parse_timestamp(value) is None:
            errors.append(f"{field_name} must be an ISO-8601 timestamp, got {value!r}")

    if 'participants' in record:
        participants = record['participants']
        if not isinstance(participants, list) or not all(isinstance(p, str) for p in participants):
            errors.append("participants must be a list of strings")

    if 'recording' in record and not isinstance(record['recording'], bool):
        errors.append(f"recording must be a boolean, got {record['recording']!r}")

    if errors:
        logger.debug(f"Call record validation errors: {errors}")
        raise CallRecordValidationError(f"Invalid call record: {'; '.join(errors)}", errors)

    return record
