# src/call_pipeline/bigquery_utils.py - BigQuery helpers for call tables

import logging
import time
import functools
from typing import List, Dict, Any, Callable, Optional, Tuple, Type
from google.cloud import bigquery
from google.api_core.exceptions import NotFound

from .config import get_config


class BigQueryRetryConfig:
    """How often and how long to wait when a call table is not yet visible"""

    def __init__(self, max_attempts: int = 3, base_delay: float = 2.0,
                 exponential_backoff: bool = True, retry_exceptions: List[Type[Exception]] = None):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.exponential_backoff = exponential_backoff
        self.retry_exceptions = tuple(retry_exceptions or [NotFound])

    def get_delay(self, attempt: int) -> float:
        """Delay after a failed attempt (1-based)"""
        factor = 2 ** (attempt - 1) if self.exponential_backoff else 1
        return self.base_delay * factor


def bigquery_retry(config: BigQueryRetryConfig = None, operation_name: str = "BigQuery operation"):
    """
    Retry a BigQuery call while the target table is still propagating.

    Streaming inserts into a table created moments ago usually fail once with
    NotFound. Other exceptions are raised immediately.
    """
    config = config or BigQueryRetryConfig()

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger('callpipeline.bigquery')
            attempt = 1

            while True:
                try:
                    result = func(*args, **kwargs)
                except config.retry_exceptions as e:
                    if attempt >= config.max_attempts:
                        logger.error(f"❌ {operation_name} failed after {attempt} attempts: {e}")
                        raise RuntimeError(f"{operation_name} failed after {attempt} attempts: {e}") from e

                    delay = config.get_delay(attempt)
                    level = logging.INFO if attempt == 1 else logging.WARNING
                    logger.log(level, f"⏳ {operation_name}: table not ready "
                                      f"(attempt {attempt}/{config.max_attempts}), waiting {delay}s")
                    time.sleep(delay)
                    attempt += 1
                    continue

                if attempt > 1:
                    logger.info(f"✅ {operation_name} succeeded on attempt {attempt}")
                return result

        return wrapper
    return decorator


def get_bigquery_client(project_id: Optional[str] = None) -> bigquery.Client:
    """Create BigQuery client with consistent configuration"""
    if project_id is None:
        project_id = get_config()['BIGQUERY_PROJECT_ID']
        if not project_id:
            raise RuntimeError("BIGQUERY_PROJECT_ID environment variable not set")

    return bigquery.Client(project=project_id)


def get_table_reference(table_name: str, dataset: Optional[str] = None,
                        project_id: Optional[str] = None) -> str:
    """Build full BigQuery table reference"""
    config = get_config()
    if project_id is None:
        project_id = config['BIGQUERY_PROJECT_ID']
        if not project_id:
            raise RuntimeError("BIGQUERY_PROJECT_ID environment variable not set")

    if dataset is None:
        dataset = config['BIGQUERY_DATASET_ID'] or "uc_calls_dev"

    return f"{project_id}.{dataset}.{table_name}"


def schema_fields(definition: List[Tuple[str, str]]) -> List[bigquery.SchemaField]:
    """Convert a (name, type) schema definition into BigQuery schema fields"""
    return [bigquery.SchemaField(name, field_type) for name, field_type in definition]


def ensure_table_exists(client: bigquery.Client, table_ref: str,
                        schema: List[bigquery.SchemaField]) -> None:
    """
    Ensure BigQuery table exists, create it with the given schema if needed.
    No readiness verification - the insert retry handles timing issues.
    """
    logger = logging.getLogger('callpipeline.bigquery')

    try:
        client.get_table(table_ref)
        logger.debug(f"✅ Table {table_ref} exists")
    except NotFound:
        logger.info(f"📝 Creating table {table_ref}")

        try:
            table = bigquery.Table(table_ref, schema=schema)
            client.create_table(table)
            logger.info(f"✅ Created table {table_ref} with {len(schema)} columns")

            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Schema: {[(f.name, f.field_type) for f in schema]}")
        except Exception as e:
            logger.error(f"❌ Failed to create table {table_ref}: {e}")
            raise RuntimeError(f"Failed to create table: {e}") from e


def insert_rows_with_smart_retry(client: bigquery.Client, table_ref: str, rows: List[Dict[str, Any]],
                                 operation_name: str = "data insertion") -> None:
    """Insert rows with retry on NotFound (new-table propagation delay)"""
    logger = logging.getLogger('callpipeline.bigquery')

    @bigquery_retry(INSERT_RETRY_CONFIG, f"{operation_name} to {table_ref}")
    def _insert_operation():
        errors = client.insert_rows_json(table_ref, rows)
        if errors:
            logger.error(f"❌ BigQuery insertion errors: {errors}")
            raise RuntimeError(f"BigQuery insertion failed: {errors}")
        return True

    _insert_operation()


INSERT_RETRY_CONFIG = BigQueryRetryConfig(
    max_attempts=3,
    base_delay=2.0,
    retry_exceptions=[NotFound]
)
