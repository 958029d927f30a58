# src/call_pipeline/call_transform/main.py

import logging
from typing import Any, Dict, Optional, Tuple, Union

from ..config import get_config
from ..events import publish_call_transformed_event, publish_call_failed_event, is_published
from ..normalization import normalize_call_record, validate_normalization
from ..registry import register_call_stage
from ..validation import CallRecordValidationError, parse_call_payload, require_call_id

TRANSFORMED_MESSAGE = "Data transformed successfully"


def unwrap_event(message: Dict[str, Any]) -> Dict[str, Any]:
    """Return the call record carried by a pipeline event envelope, or the message itself"""
    if 'type' in message and isinstance(message.get('data'), dict):
        return message['data']
    return message


def transform_call_message(message: Union[str, bytes, Dict[str, Any]],
                           dry_run: Optional[bool] = None) -> Tuple[Dict[str, Any], int]:
    """
    Normalize a call record, calculate its duration and publish it for routing.

    Args:
        message: JSON call record or pipeline event envelope
        dry_run: If True, skip event publishing and registry writes
            (defaults to PIPELINE_DRY_RUN)

    Returns:
        tuple: (response body, status code)
    """
    logger = logging.getLogger('callpipeline.transform')

    if dry_run is None:
        dry_run = get_config()['DRY_RUN']

    try:
        record = unwrap_event(parse_call_payload(message))
        require_call_id(record)
    except CallRecordValidationError as e:
        logger.warning(f"⚠️ Cannot transform call record: {e.message}")
        return {"status": "error", "error": e.message}, 400

    call_id = record['callId']
    logger.info(f"⚙️ Transforming call {call_id}")

    try:
        transformed = normalize_call_record(record)

        issues = validate_normalization(transformed)
        if issues:
            logger.warning(f"⚠️ Transformed call {call_id} has {len(issues)} normalization issues")

        if transformed['duration_minutes'] is None:
            logger.info(f"ℹ️ No duration for call {call_id}")
        else:
            logger.info(f"⏱️ Call {call_id} lasted {transformed['duration_minutes']} minutes")

        message_id = None
        if not dry_run:
            message_id = publish_call_transformed_event(transformed)
            if is_published(message_id):
                logger.info(f"✅ Published transform event: {message_id}")
            else:
                logger.warning(f"⚠️ Transform event not published: {message_id}")

            if not register_call_stage(transformed['call_id'], transformed['source'], "transform", "completed",
                                       f"Duration: {transformed['duration_minutes']} minutes"):
                logger.warning("⚠️ Registry registration failed, but transform succeeded")
        else:
            logger.info("🛑 DRY RUN: Skipping event publishing and registry")

        return {
            "status": "success",
            "message": TRANSFORMED_MESSAGE,
            "call_id": transformed['call_id'],
            "record": transformed,
            "normalization_issues": issues,
            "message_id": message_id,
            "dry_run": dry_run
        }, 200

    except Exception as e:
        error_msg = str(e)
        logger.error(f"❌ Transform failed for call {call_id}: {error_msg}", exc_info=True)

        if not dry_run:
            register_call_stage(call_id, record.get('source'), "transform", "failed",
                                f"Transform failed: {error_msg}")
            publish_call_failed_event(call_id, "transform", error_msg)

        return {
            "status": "error",
            "call_id": call_id,
            "error": error_msg,
            "dry_run": dry_run
        }, 500
