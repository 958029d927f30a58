# ===============================================================================
# src/route_main.py - Pub/Sub-triggered call routing Cloud Function
# ===============================================================================

import logging
from datetime import datetime
import functions_framework

from call_pipeline.cloud_events import parse_cloud_event

ACCEPTED_EVENT_TYPES = ('uc.call.transformed',)


@functions_framework.cloud_event
def main(cloud_event):
    """
    Route Cloud Function entry point

    Args:
        cloud_event: CloudEvent object containing a Pub/Sub message with a
            transformed call record (event envelope or raw record)

    Returns:
        dict: Response with status and routing details
    """
    logger = logging.getLogger('callpipeline.route.cloudfunction')

    try:
        from call_pipeline.config import init_env
        init_env()

        logger.info("🔀 Route Cloud Function triggered via Pub/Sub (2nd gen)")

        message = parse_cloud_event(cloud_event)
        if not message:
            logger.error("❌ Could not parse CloudEvent data")
            return {"status": "error", "message": "Invalid event data"}

        event_type = message.get('type')
        if event_type is not None and event_type not in ACCEPTED_EVENT_TYPES:
            logger.info(f"ℹ️ Ignoring event type: {event_type}")
            return {"status": "ignored", "event_type": event_type}

        from call_pipeline.call_routing.main import route_call_message
        result, status_code = route_call_message(message)

        if status_code == 200:
            logger.info("✅ Routing completed successfully")
        else:
            logger.warning(f"⚠️ Routing failed with status {status_code}: {result.get('error')}")

        result['status_code'] = status_code
        return result

    except Exception as e:
        logger.error(f"❌ Route function failed: {e}", exc_info=True)
        return {
            "status": "error",
            "error": str(e),
            "timestamp": datetime.utcnow().isoformat()
        }
