# src/call_pipeline/call_transform/__init__.py

# Normalization and duration calculation of call records
from .main import transform_call_message, unwrap_event, TRANSFORMED_MESSAGE
from ..duration import calculate_duration

__all__ = [
    "transform_call_message",
    "unwrap_event",
    "calculate_duration",
    "TRANSFORMED_MESSAGE",
]
