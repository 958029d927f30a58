# src/call_pipeline/schema.py

from typing import List, Tuple, Dict


# ─────────────────────────────────────────────────────────────────────────────────
#   Normalized Call Record Schema & Field Map
# ─────────────────────────────────────────────────────────────────────────────────

SCHEMA_CALL_RECORDS: List[Tuple[str, str]] = [
    ("call_id",            "STRING"),
    ("source",             "STRING"),
    ("source_key",         "STRING"),
    ("start_time",         "TIMESTAMP"),
    ("end_time",           "TIMESTAMP"),
    ("duration_minutes",   "INTEGER"),
    ("participants",       "STRING"),    # JSON array of lowercase identifiers
    ("participant_count",  "INTEGER"),
    ("recording",          "BOOLEAN"),
    ("ingested_at",        "TIMESTAMP"),
    ("transformed_at",     "TIMESTAMP"),
]

# normalized field -> incoming (camelCase) field
CALL_RECORD_FIELD_MAP: Dict[str, str] = {
    "call_id":       "callId",
    "source":        "source",
    "start_time":    "startTime",
    "end_time":      "endTime",
    "participants":  "participants",
    "recording":     "recording",
    "ingested_at":   "ingestedAt",
}


# ─────────────────────────────────────────────────────────────────────────────────
#   Call Registry Schema
# ─────────────────────────────────────────────────────────────────────────────────

SCHEMA_CALL_REGISTRY: List[Tuple[str, str]] = [
    ("call_id",            "STRING"),
    ("source",             "STRING"),
    ("stage",              "STRING"),    # ingest / transform / route
    ("status",             "STRING"),    # completed / failed
    ("notes",              "STRING"),
    ("record_timestamp",   "TIMESTAMP"),
]
