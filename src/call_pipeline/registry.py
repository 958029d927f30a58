# src/call_pipeline/registry.py

import logging
from typing import Optional
from google.cloud import bigquery

from .bigquery_utils import (
    get_bigquery_client,
    get_table_reference,
    ensure_table_exists,
    schema_fields
)
from .config import BQ_CALL_REGISTRY_TABLE
from .schema import SCHEMA_CALL_REGISTRY


def register_call_stage(call_id: str, source: Optional[str], stage: str, status: str,
                        notes: Optional[str] = None) -> bool:
    """
    Record a pipeline stage outcome for a call in the call registry.

    Uses a parameterized INSERT with CURRENT_TIMESTAMP() for server-side consistency.

    Args:
        call_id: The call identifier
        source: Source system of the call
        stage: Pipeline stage ('ingest', 'transform', 'route')
        status: Stage status ('completed', 'failed')
        notes: Free-form details

    Returns:
        True if successful, False otherwise
    """
    logger = logging.getLogger('callpipeline.registry')

    try:
        client = get_bigquery_client()
        table_ref = get_table_reference(BQ_CALL_REGISTRY_TABLE)

        ensure_table_exists(client, table_ref, schema_fields(SCHEMA_CALL_REGISTRY))

        query = f"""
        INSERT INTO `{table_ref}` (
            call_id,
            source,
            stage,
            status,
            notes,
            record_timestamp
        ) VALUES (
            @call_id,
            @source,
            @stage,
            @status,
            @notes,
            CURRENT_TIMESTAMP()
        )
        """

        job_config = bigquery.QueryJobConfig(
            query_parameters=[
                bigquery.ScalarQueryParameter("call_id", "STRING", call_id),
                bigquery.ScalarQueryParameter("source", "STRING", source),
                bigquery.ScalarQueryParameter("stage", "STRING", stage),
                bigquery.ScalarQueryParameter("status", "STRING", status),
                bigquery.ScalarQueryParameter("notes", "STRING", notes),
            ]
        )

        job = client.query(query, job_config=job_config)
        job.result()

        logger.info(f"✅ Registered {stage} {status} for call {call_id}")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to register {stage} {status} for call {call_id}: {e}")
        return False
