"""Image helpers: format sniffing and base64 data URL conversion."""

import base64
import binascii
import io
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

DEFAULT_MIME_TYPE = "image/jpeg"


@dataclass(frozen=True)
class ImageBlob:
    """Raw image bytes tagged with their MIME type."""
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    @property
    def suffix(self) -> str:
        """File suffix matching the MIME type (e.g. ".jpg")."""
        if self.mime_type == "image/jpeg":
            return ".jpg"
        return mimetypes.guess_extension(self.mime_type) or ".bin"

    def __repr__(self) -> str:
        return f"ImageBlob(mime_type={self.mime_type!r}, size={len(self.data)})"


def sniff_mime_type(data: bytes) -> str | None:
    """Return the MIME type Pillow recognizes for ``data``, or None."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        # Headers claiming huge dimensions trip the decompression bomb check
        return None
    if not fmt:
        return None
    return Image.MIME.get(fmt.upper(), DEFAULT_MIME_TYPE)


def to_data_url(data: bytes, mime_type: str | None = None) -> str:
    """Encode bytes as a ``data:<mime>;base64,`` URL."""
    mime = mime_type or sniff_mime_type(data) or DEFAULT_MIME_TYPE
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}"


def from_data_url(data: str) -> ImageBlob:
    """Decode a base64 data URL (or bare base64 string) into an ImageBlob."""
    mime = DEFAULT_MIME_TYPE
    encoded = data
    if data.startswith("data:"):
        # Remove data URL prefix (e.g., "data:image/png;base64,")
        header, _, encoded = data.partition(",")
        media = header[len("data:"):].split(";", 1)[0]
        if media:
            mime = media
    try:
        raw_bytes = base64.b64decode(encoded, validate=True)
    except binascii.Error as exc:
        raise ValueError(f"Invalid base64 image payload: {exc}") from exc
    return ImageBlob(data=raw_bytes, mime_type=mime)


def file_to_data_url(path: Path) -> str:
    """Read an image file and return it as a data URL."""
    data = path.read_bytes()
    guessed, _ = mimetypes.guess_type(path.name)
    return to_data_url(data, sniff_mime_type(data) or guessed)
