# src/call_pipeline/__init__.py
"""
UC call pipeline package exports.

Three independent stages: ingest (HTTP), transform (Pub/Sub) and route (Pub/Sub).
"""

# ─── Configuration ────────────────────────────────────────────────────────────
from .config import init_env, get_config, validate_config

# ─── Pipeline Stages ──────────────────────────────────────────────────────────
from .call_ingest import ingest_call_record
from .call_transform import transform_call_message
from .call_routing import route_call_message

# ─── Call Record Handling ─────────────────────────────────────────────────────
from .duration import calculate_duration, parse_timestamp
from .normalization import normalize_call_record, validate_normalization
from .validation import CallRecordValidationError, validate_call_record

# ─── Schema Definitions ───────────────────────────────────────────────────────
from .schema import SCHEMA_CALL_RECORDS, SCHEMA_CALL_REGISTRY, CALL_RECORD_FIELD_MAP

__all__ = [
    # configuration
    "init_env",
    "get_config",
    "validate_config",
    # stages
    "ingest_call_record",
    "transform_call_message",
    "route_call_message",
    # call records
    "calculate_duration",
    "parse_timestamp",
    "normalize_call_record",
    "validate_normalization",
    "CallRecordValidationError",
    "validate_call_record",
    # schemas & maps
    "SCHEMA_CALL_RECORDS",
    "SCHEMA_CALL_REGISTRY",
    "CALL_RECORD_FIELD_MAP",
]
