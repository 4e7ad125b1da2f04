"""Request handlers for the Try-On gateway."""

from .tryon_handler import TryOnRequestHandler

__all__ = ["TryOnRequestHandler"]
