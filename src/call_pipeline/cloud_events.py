# src/call_pipeline/cloud_events.py

import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional


def parse_cloud_event(cloud_event) -> Optional[Dict[str, Any]]:
    """
    Parse the Pub/Sub message carried by a 2nd gen Cloud Functions CloudEvent.

    Returns:
        Decoded JSON message, or None if the event carries no usable data
    """
    logger = logging.getLogger('callpipeline.cloudfunction')

    data = getattr(cloud_event, 'data', None)
    if not data:
        logger.warning("No data found in CloudEvent")
        return None

    try:
        if isinstance(data, dict) and 'message' in data:
            message_data = data['message'].get('data', '')
            if not message_data:
                logger.warning("Pub/Sub message has no data")
                return None
            decoded = base64.b64decode(message_data).decode('utf-8')
        elif isinstance(data, (bytes, bytearray)):
            decoded = bytes(data).decode('utf-8')
        elif isinstance(data, dict):
            logger.debug("CloudEvent data is already a decoded message")
            return data
        else:
            decoded = str(data)

        message = json.loads(decoded)
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.error(f"Failed to parse CloudEvent: {e}")
        return None

    if not isinstance(message, dict):
        logger.error(f"CloudEvent message is not a JSON object: {type(message).__name__}")
        return None

    logger.debug(f"Parsed CloudEvent message: {message.get('type', 'raw call record')}")
    return message
