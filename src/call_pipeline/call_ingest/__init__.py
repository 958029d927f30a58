# src/call_pipeline/call_ingest/__init__.py

# HTTP intake of call records
from .main import ingest_call_record, ingested_message

__all__ = [
    "ingest_call_record",
    "ingested_message",
]
