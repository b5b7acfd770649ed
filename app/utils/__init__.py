"""
Utility helpers for the chat service
"""

from .trace_id import new_trace_id, trace_id_var

__all__ = ["new_trace_id", "trace_id_var"]
