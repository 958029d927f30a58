# src/call_pipeline/events.py

import logging
import json
from datetime import datetime
from typing import Any, Dict, Optional
from google.cloud import pubsub_v1

from .config import TOPICS, get_config, get_environment, get_project_id, is_running_in_gcp

EVENT_CALL_INGESTED = "uc.call.ingested"
EVENT_CALL_TRANSFORMED = "uc.call.transformed"
EVENT_CALL_FAILED = "uc.call.failed"

LOCAL_MODE = "local_mode_development"


def _get_pubsub_client() -> pubsub_v1.PublisherClient:
    return pubsub_v1.PublisherClient()


def get_pubsub_topic_name(stage: str) -> str:
    """Get environment-specific topic name for a pipeline stage ('ingested' or 'transformed')"""
    if stage not in TOPICS:
        raise ValueError(f"Unknown pipeline topic stage: {stage}")

    env = get_environment()
    topic_name = TOPICS[stage].get(env, TOPICS[stage]['development'])

    logger = logging.getLogger('callpipeline.events')
    logger.debug(f"Environment: {env}, Stage: {stage} -> Topic: {topic_name}")

    return topic_name


def build_event(event_type: str, data: Dict[str, Any], source: str) -> Dict[str, Any]:
    """Build the pipeline event envelope"""
    current_env = get_environment()
    return {
        "type": event_type,
        "version": "1.0",
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "source": f"{source}-{current_env}",
        "environment": current_env,
        "data": data
    }


def _publish(topic_stage: str, event: Dict[str, Any]) -> str:
    """
    Publish an event envelope to the stage topic.

    Returns:
        Message ID if successful, otherwise a sentinel describing the failure
    """
    logger = logging.getLogger('callpipeline.events')
    event_type = event.get('type')

    if not is_running_in_gcp():
        logger.info(f"📤 Local development mode - skipping Pub/Sub publishing of {event_type}")
        return LOCAL_MODE

    topic_name = get_pubsub_topic_name(topic_stage)

    try:
        project_id = get_project_id()
        logger.debug(f"Publishing to project: {project_id}")

        publisher = _get_pubsub_client()
        topic_path = publisher.topic_path(project_id, topic_name)

        message_json = json.dumps(event, default=str)
        logger.debug(f"Publishing message: {len(message_json)} bytes to {topic_path}")

        future = publisher.publish(topic_path, message_json.encode('utf-8'))
        message_id = future.result()

        logger.info(f"📤 Published {event_type} event to {topic_name} (message ID: {message_id})")
        return message_id

    except Exception as e:
        error_str = str(e).lower()

        if "403" in error_str or "permission" in error_str:
            service_account = get_config().get('SERVICE_ACCOUNT') or 'YOUR_SERVICE_ACCOUNT'
            logger.error(f"❌ Pub/Sub permission denied: {e}")
            logger.error("💡 Fix: Grant pubsub.publisher role to the service account")
            logger.error(f"💡 Command: gcloud pubsub topics add-iam-policy-binding {topic_name} "
                         f"--member='serviceAccount:{service_account}' --role='roles/pubsub.publisher'")
            return "permission_denied"

        elif "404" in error_str or "not found" in error_str:
            logger.error(f"❌ Pub/Sub topic not found: {topic_name}")
            logger.error(f"💡 Command: gcloud pubsub topics create {topic_name}")
            return "topic_not_found"

        logger.error(f"❌ Failed to publish {event_type} event: {e}")
        logger.debug(f"Error type: {type(e).__name__}")
        return "publish_failed"


def is_published(message_id: Optional[str]) -> bool:
    """True when a publish result is an actual Pub/Sub message ID"""
    return bool(message_id) and message_id not in (
        LOCAL_MODE, "permission_denied", "topic_not_found", "publish_failed"
    )


def publish_call_ingested_event(record: Dict[str, Any]) -> str:
    """
    Publish an ingested call record for the transform stage.

    Args:
        record: Validated call record with ingest metadata

    Returns:
        Message ID if successful, a failure sentinel, or "local_mode_development" locally
    """
    event = build_event(EVENT_CALL_INGESTED, record, "uc-ingest")
    event['metadata'] = {
        'triggered_by': 'ingest_function',
        'call_id': record.get('callId'),
        'function_name': get_config()['FUNCTION_NAME'],
    }
    return _publish("ingested", event)


def publish_call_transformed_event(record: Dict[str, Any]) -> str:
    """
    Publish a normalized call record for the route stage.

    Args:
        record: Normalized call record

    Returns:
        Message ID if successful, a failure sentinel, or "local_mode_development" locally
    """
    event = build_event(EVENT_CALL_TRANSFORMED, record, "uc-transform")
    event['metadata'] = {
        'triggered_by': 'transform_function',
        'call_id': record.get('call_id'),
        'duration_minutes': record.get('duration_minutes'),
        'function_name': get_config()['FUNCTION_NAME'],
    }
    return _publish("transformed", event)


def publish_call_failed_event(call_id: Optional[str], stage: str, error_message: str) -> str:
    """
    Publish a stage failure event to the topic downstream of the failed stage.

    Args:
        call_id: The call identifier, if known
        stage: Pipeline stage that failed ('ingest', 'transform')
        error_message: Description of the error
    """
    data = {
        'call_id': call_id,
        'stage': stage,
        'timestamp': datetime.utcnow().isoformat() + "Z",
        'error_message': error_message,
        'metadata': {
            'triggered_by': f'{stage}_function',
            'environment': get_environment(),
            'function_name': get_config()['FUNCTION_NAME'],
        }
    }
    topic_stage = "ingested" if stage == "ingest" else "transformed"
    return _publish(topic_stage, build_event(EVENT_CALL_FAILED, data, f"uc-{stage}"))


def publish_custom_event(event_type: str, event_data: Dict, topic_stage: str = "transformed",
                         source: str = "uc-pipeline") -> str:
    """
    Publish a custom event to an environment-specific pipeline topic.

    Args:
        event_type: Type of event (e.g., "uc.call.replayed")
        event_data: Event-specific data
        topic_stage: Topic to publish to ('ingested' or 'transformed')
        source: Source system identifier
    """
    return _publish(topic_stage, build_event(event_type, event_data, source))
