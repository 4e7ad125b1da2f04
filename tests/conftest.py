# Test fixtures and configuration
import asyncio
import io
import struct
import sys
import zlib
from pathlib import Path

import pytest
from PIL import Image

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tryon_gateway.config import GatewayConfig, RetryConfig
from tryon_gateway.services.remote_client import ClientOptions


class FakeHandle:
    """In-memory stand-in for a connected remote model."""

    def __init__(self, response=None, error: Exception | None = None):
        self.response = response if response is not None else {"data": ["img1", "img2"]}
        self.error = error
        self.calls = []

    async def predict(self, endpoint, args, options):
        self.calls.append((endpoint, args, options))
        if self.error is not None:
            raise self.error
        return self.response


class FakeInferenceClient:
    """Records connect() calls; fails the first ``failures`` attempts.

    When ``gate`` is set, each connect waits on it before resolving.
    """

    def __init__(self, handle=None, failures: int = 0, gate: asyncio.Event | None = None):
        self.handle = handle if handle is not None else FakeHandle()
        self.failures = failures
        self.gate = gate
        self.connect_calls = 0

    async def connect(self, model_id: str, options: ClientOptions):
        self.connect_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.connect_calls <= self.failures:
            raise ConnectionError(f"Space unavailable (attempt {self.connect_calls})")
        return self.handle


class HangingInferenceClient:
    """A connect() that never resolves, leaving the manager initializing."""

    def __init__(self):
        self.connect_calls = 0

    async def connect(self, model_id: str, options: ClientOptions):
        self.connect_calls += 1
        await asyncio.Event().wait()


def make_image_bytes(fmt: str = "JPEG", size=(8, 8)) -> bytes:
    output = io.BytesIO()
    Image.new("RGB", size, color=(200, 30, 30)).save(output, format=fmt)
    return output.getvalue()


def make_png_header(width: int, height: int) -> bytes:
    """A PNG with a valid header but no pixel data."""
    def chunk(kind: bytes, payload: bytes) -> bytes:
        crc = zlib.crc32(kind + payload) & 0xFFFFFFFF
        return struct.pack(">I", len(payload)) + kind + payload + struct.pack(">I", crc)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", b"") + chunk(b"IEND", b"")


@pytest.fixture
def jpeg_bytes():
    """Small valid JPEG image bytes."""
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes():
    """Small valid PNG image bytes."""
    return make_image_bytes("PNG")


@pytest.fixture
def huge_png_bytes():
    """Tiny upload whose header claims 60000x60000 pixels."""
    return make_png_header(60000, 60000)


@pytest.fixture
def client_options():
    return ClientOptions(hf_token=None, timeout=5.0, logging=False)


@pytest.fixture
def retry_config():
    return RetryConfig(max_attempts=3, base_delay=5.0, max_delay=60.0)


@pytest.fixture
def gateway_config():
    """Config that never touches a real .env or the network at startup."""
    return GatewayConfig(
        _env_file=None,
        connect_on_startup=False,
        environment="test",
        retry=RetryConfig(max_attempts=3, base_delay=0.01, max_delay=0.05),
    )


@pytest.fixture
def make_handle():
    """Factory for fake handles: make_handle(response=..., error=...)."""
    return FakeHandle


@pytest.fixture
def make_client():
    """Factory for fake clients: make_client(handle=..., failures=..., gate=...)."""
    return FakeInferenceClient


@pytest.fixture
def hanging_client():
    return HangingInferenceClient()
