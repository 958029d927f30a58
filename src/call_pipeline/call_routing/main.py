# src/call_pipeline/call_routing/main.py

import logging
from typing import Any, Dict, Optional, Tuple, Union

from ..config import BQ_OTHER_CALLS_TABLE, ROUTE_TABLES, get_config, validate_config
from ..normalization import is_normalized, normalize_call_record
from ..registry import register_call_stage
from ..store import store_call_record
from ..validation import CallRecordValidationError, parse_call_payload, require_call_id
from ..call_transform.main import unwrap_event


def resolve_route_table(source_key: Optional[str]) -> str:
    """Destination table for a source system; unknown sources go to the catch-all table"""
    logger = logging.getLogger('callpipeline.route')

    table = ROUTE_TABLES.get(source_key or "")
    if table is None:
        logger.warning(f"⚠️ Unknown call source '{source_key}' - routing to {BQ_OTHER_CALLS_TABLE}")
        return BQ_OTHER_CALLS_TABLE
    return table


def route_call_message(message: Union[str, bytes, Dict[str, Any]],
                       dry_run: Optional[bool] = None) -> Tuple[Dict[str, Any], int]:
    """
    Persist a call record to the storage table of its source system.

    Raw (not yet transformed) records are normalized first.

    Args:
        message: JSON call record (raw or normalized) or pipeline event envelope
        dry_run: If True, skip BigQuery writes and registry
            (defaults to PIPELINE_DRY_RUN)

    Returns:
        tuple: (response body, status code)
    """
    logger = logging.getLogger('callpipeline.route')

    if dry_run is None:
        dry_run = get_config()['DRY_RUN']

    try:
        record = unwrap_event(parse_call_payload(message))
        if not is_normalized(record):
            require_call_id(record)
            logger.debug(f"Normalizing raw call record {record['callId']} before routing")
            record = normalize_call_record(record)
        elif not record.get('call_id'):
            raise CallRecordValidationError("Missing call_id in transformed call record")
    except CallRecordValidationError as e:
        logger.warning(f"⚠️ Cannot route call record: {e.message}")
        return {"status": "error", "error": e.message}, 400

    call_id = record['call_id']
    source = record.get('source') or "Unknown"
    table = resolve_route_table(record.get('source_key'))

    logger.info(f"🔀 Routing {source} call {call_id} to {table}")

    if dry_run:
        logger.info(f"🛑 DRY RUN: Would have stored call {call_id} to {table}")
    else:
        try:
            validate_config(['BIGQUERY_PROJECT_ID', 'BIGQUERY_DATASET_ID'])
            store_call_record(record, table)
        except Exception as e:
            error_msg = str(e)
            logger.error(f"❌ Routing failed for call {call_id}: {error_msg}", exc_info=True)
            register_call_stage(call_id, source, "route", "failed", f"Route to {table} failed: {error_msg}")
            return {
                "status": "error",
                "call_id": call_id,
                "table": table,
                "error": error_msg,
                "dry_run": dry_run
            }, 500

        if not register_call_stage(call_id, source, "route", "completed", f"Stored in {table}"):
            logger.warning("⚠️ Registry registration failed, but routing succeeded")

    return {
        "status": "success",
        "message": f"{source} call data routed to {table}",
        "call_id": call_id,
        "source": source,
        "table": table,
        "dry_run": dry_run
    }, 200
