"""Utility helpers."""

from .images import ImageBlob, file_to_data_url, from_data_url, sniff_mime_type, to_data_url

__all__ = [
    "ImageBlob",
    "file_to_data_url",
    "from_data_url",
    "sniff_mime_type",
    "to_data_url",
]
