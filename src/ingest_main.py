# ===============================================================================
# src/ingest_main.py - HTTP-triggered call ingest Cloud Function
# ===============================================================================

import hmac
import logging
from typing import Optional
from flask import Request


def is_authorized(request: Request, function_key: Optional[str]) -> bool:
    """
    Check the function key of an ingest request.

    The key is accepted from the 'x-functions-key' header or the 'code' query
    parameter. Without a configured key every request is authorized.
    """
    if not function_key:
        return True

    provided = request.headers.get('x-functions-key') or request.args.get('code') or ''
    return hmac.compare_digest(provided.encode('utf-8'), function_key.encode('utf-8'))


def main(request: Request):
    """
    Ingest Cloud Function entry point

    Args:
        request: Flask Request object carrying a JSON call record

    Returns:
        tuple: (response_data, status_code)
    """
    logging.basicConfig(level=logging.INFO)
    logger = logging.getLogger('callpipeline.ingest.cloudfunction')

    logger.info("🌐 Ingest Cloud Function HTTP trigger received")

    try:
        from call_pipeline.config import init_env, get_config
        init_env(log_level=request.args.get('log_level'))
        config = get_config()
    except Exception as e:
        logger.error(f"❌ Failed to initialize environment: {e}", exc_info=True)
        return f"Configuration error: {e}", 500

    if not is_authorized(request, config['INGEST_FUNCTION_KEY']):
        logger.warning("🔒 Rejected ingest request with missing or invalid function key")
        return {"status": "error", "error": "Unauthorized"}, 401

    payload = request.get_data(as_text=True)
    default_source = request.args.get('source') or config['DEFAULT_INGEST_SOURCE']
    logger.info(f"📦 Received {len(payload)} bytes (default source: {default_source})")

    try:
        from call_pipeline.call_ingest.main import ingest_call_record
        result, status_code = ingest_call_record(
            payload,
            default_source=default_source,
            trigger_source="http"
        )
    except Exception as e:
        logger.error(f"❌ Ingest failed: {e}", exc_info=True)
        return f"Ingest error: {e}", 500

    if status_code == 200:
        logger.info("✅ Ingest completed successfully")
    else:
        logger.warning(f"⚠️ Ingest finished with status {status_code}")
    return result, status_code
