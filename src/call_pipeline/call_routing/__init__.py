# src/call_pipeline/call_routing/__init__.py

# Per-source persistence of call records
from .main import route_call_message, resolve_route_table

__all__ = [
    "route_call_message",
    "resolve_route_table",
]
