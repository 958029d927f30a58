# src/call_pipeline/store.py

import json
import logging
from datetime import datetime
from typing import List, Dict, Any, Optional

from .bigquery_utils import (
    get_bigquery_client,
    get_table_reference,
    insert_rows_with_smart_retry,
    ensure_table_exists,
    schema_fields
)
from .schema import SCHEMA_CALL_RECORDS


def prepare_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a normalized call record into a BigQuery-ready row.

    Only declared schema columns are kept. Lists and dicts become JSON strings,
    ID fields are forced to strings.
    """
    columns = [name for name, _ in SCHEMA_CALL_RECORDS]
    clean_row = {}
    for key in columns:
        value = row.get(key)
        if value is None:
            clean_row[key] = None
        elif isinstance(value, (list, dict)):
            clean_row[key] = json.dumps(value)
        elif key.endswith('_id'):
            clean_row[key] = str(value)
        else:
            clean_row[key] = value
    return clean_row


def store_to_bigquery(rows: List[Dict[str, Any]], table_name: str, dataset: Optional[str] = None) -> int:
    """
    Write normalized call records to a BigQuery table with smart retry logic.

    Creates the table from the declared call record schema if it does not exist.

    Args:
        rows: Normalized call records
        table_name: Name of the BigQuery table
        dataset: Dataset name (uses configured dataset if not provided)

    Returns:
        Number of rows inserted
    """
    logger = logging.getLogger('callpipeline.store')

    if not rows:
        logger.info(f"📊 No data to store for {table_name}")
        return 0

    start_time = datetime.utcnow()

    client = get_bigquery_client()
    full_table = get_table_reference(table_name, dataset)

    logger.info(f"💾 Preparing to store {len(rows)} rows into '{full_table}'")

    ensure_table_exists(client, full_table, schema_fields(SCHEMA_CALL_RECORDS))

    processed_rows = [prepare_row(row) for row in rows]

    try:
        insert_rows_with_smart_retry(
            client=client,
            table_ref=full_table,
            rows=processed_rows,
            operation_name=f"store {len(processed_rows)} rows to {table_name}"
        )
    except Exception as e:
        logger.error(f"❌ Failed to insert rows into {full_table}: {e}")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Sample row keys: {list(processed_rows[0].keys())}")
        raise RuntimeError(f"BigQuery insertion failed: {e}") from e

    total_time = (datetime.utcnow() - start_time).total_seconds()
    logger.info(f"✅ Successfully inserted {len(processed_rows)} rows into {full_table} in {total_time:.2f}s")

    return len(processed_rows)


def store_call_record(record: Dict[str, Any], table_name: str) -> int:
    """Store a single normalized call record"""
    return store_to_bigquery([record], table_name)
