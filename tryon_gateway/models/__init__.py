"""Data models for the Try-On gateway."""

from .connection import ConnectionState, ConnectionStatus
from .tryon import TryOnRequest, TryOnResult

__all__ = [
    "ConnectionState",
    "ConnectionStatus",
    "TryOnRequest",
    "TryOnResult",
]
