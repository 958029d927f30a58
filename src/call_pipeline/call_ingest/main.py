# src/call_pipeline/call_ingest/main.py

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Tuple, Union

from ..config import get_config
from ..events import publish_call_ingested_event, publish_call_failed_event, is_published
from ..normalization import normalize_source
from ..registry import register_call_stage
from ..validation import CallRecordValidationError, parse_call_payload, validate_call_record


def ingested_message(source: str) -> str:
    return f"{source} call data ingested successfully"


def ingest_call_record(payload: Union[str, bytes, Dict[str, Any]],
                       default_source: Optional[str] = None,
                       dry_run: Optional[bool] = None,
                       trigger_source: str = "http") -> Tuple[Dict[str, Any], int]:
    """
    Ingest a single call record and hand it to the transform stage.

    Args:
        payload: JSON call record (text, bytes or decoded dict)
        default_source: Source used when the record carries none
            (defaults to DEFAULT_INGEST_SOURCE, "Teams")
        dry_run: If True, skip event publishing and registry writes
            (defaults to PIPELINE_DRY_RUN)
        trigger_source: Who/what triggered this ingest, for logging

    Returns:
        tuple: (response body, status code)
    """
    logger = logging.getLogger('callpipeline.ingest')
    config = get_config()

    if dry_run is None:
        dry_run = config['DRY_RUN']
    if default_source is None:
        default_source = config['DEFAULT_INGEST_SOURCE']

    logger.info(f"🚀 Call ingest started (triggered by: {trigger_source})")
    if dry_run:
        logger.info("🛑 DRY RUN MODE - no events or registry records will be written")

    try:
        record = parse_call_payload(payload)
        validate_call_record(record)
    except CallRecordValidationError as e:
        logger.warning(f"⚠️ Rejected call record: {e.message}")
        return {
            "status": "error",
            "error": e.message,
            "errors": e.errors,
        }, 400

    call_id = record['callId'].strip()
    source = normalize_source(record.get('source') or default_source)

    try:
        ingested = dict(record)
        ingested['callId'] = call_id
        ingested['source'] = source
        ingested['ingestedAt'] = datetime.utcnow().isoformat() + "Z"
        ingested['ingestId'] = uuid.uuid4().hex

        logger.info(f"📞 Ingested {source} call {call_id}")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Ingested record fields: {sorted(ingested.keys())}")

        message_id = None
        if not dry_run:
            message_id = publish_call_ingested_event(ingested)
            if is_published(message_id):
                logger.info(f"✅ Published ingest event: {message_id}")
            else:
                logger.warning(f"⚠️ Ingest event not published: {message_id}")

            if not register_call_stage(call_id, source, "ingest", "completed",
                                       f"Ingested via {trigger_source}"):
                logger.warning("⚠️ Registry registration failed, but ingest succeeded")
        else:
            logger.info("🛑 DRY RUN: Skipping event publishing and registry")

        return {
            "status": "success",
            "message": ingested_message(source),
            "call_id": call_id,
            "source": source,
            "ingest_id": ingested['ingestId'],
            "message_id": message_id,
            "dry_run": dry_run
        }, 200

    except Exception as e:
        error_msg = str(e)
        logger.error(f"❌ Ingest failed for call {call_id}: {error_msg}", exc_info=True)

        if not dry_run:
            register_call_stage(call_id, source, "ingest", "failed", f"Ingest failed: {error_msg}")
            publish_call_failed_event(call_id, "ingest", error_msg)

        return {
            "status": "error",
            "call_id": call_id,
            "error": error_msg,
            "dry_run": dry_run
        }, 500
