"""Tests for the gradio_client binding, with the Gradio Client mocked out."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from tryon_gateway.services.gradio_backend import GradioHandle, GradioInferenceClient
from tryon_gateway.services.remote_client import ClientOptions, PredictOptions
from tryon_gateway.utils.images import ImageBlob


class TestGradioInferenceClient:

    @pytest.mark.asyncio
    async def test_connect_maps_options(self):
        """Client options become gradio Client constructor arguments."""
        with patch("tryon_gateway.services.gradio_backend.Client") as mock_client_cls:
            options = ClientOptions(hf_token="hf_secret", timeout=42.0, logging=False)

            handle = await GradioInferenceClient().connect("yisol/IDM-VTON", options)

        mock_client_cls.assert_called_once()
        args, kwargs = mock_client_cls.call_args
        assert args == ("yisol/IDM-VTON",)
        assert kwargs["hf_token"] == "hf_secret"
        assert kwargs["verbose"] is False
        assert kwargs["httpx_kwargs"]["timeout"] == httpx.Timeout(42.0)
        assert isinstance(handle, GradioHandle)
        assert handle.client is mock_client_cls.return_value

    @pytest.mark.asyncio
    async def test_connect_errors_propagate(self):
        with patch(
            "tryon_gateway.services.gradio_backend.Client",
            side_effect=ValueError("Could not fetch config"),
        ):
            with pytest.raises(ValueError, match="Could not fetch config"):
                await GradioInferenceClient().connect("yisol/IDM-VTON", ClientOptions())


class TestGradioHandle:

    @pytest.fixture
    def gradio_client(self):
        return MagicMock()

    @pytest.mark.asyncio
    async def test_blobs_uploaded_as_files(self, gradio_client, jpeg_bytes, png_bytes, tmp_path):
        """ImageBlobs (even nested) become gradio file references that exist at submit time."""
        submitted = {}

        def fake_submit(*args, **kwargs):
            submitted["args"] = args
            submitted["kwargs"] = kwargs
            background = Path(args[0]["background"]["path"])
            garment = Path(args[1]["path"])
            submitted["background_bytes"] = background.read_bytes()
            submitted["garment_bytes"] = garment.read_bytes()
            submitted["garment_suffix"] = garment.suffix
            return job

        generated = tmp_path / "image.png"
        generated.write_bytes(png_bytes)
        job = MagicMock()
        job.result.return_value = (str(generated), {"url": "https://example.com/mask.png", "path": "/tmp/x"})
        gradio_client.submit.side_effect = fake_submit

        handle = GradioHandle(gradio_client, "yisol/IDM-VTON")
        response = await handle.predict(
            2,
            [
                {"background": ImageBlob(jpeg_bytes), "layers": [], "composite": None},
                ImageBlob(png_bytes, "image/png"),
                "message",
                True,
                True,
                20,
                42,
            ],
            PredictOptions(timeout=12.0),
        )

        assert submitted["kwargs"] == {"fn_index": 2}
        assert submitted["background_bytes"] == jpeg_bytes
        assert submitted["garment_bytes"] == png_bytes
        assert submitted["garment_suffix"] == ".png"
        assert submitted["args"][0]["layers"] == []
        assert submitted["args"][0]["composite"] is None
        assert submitted["args"][2:] == ("message", True, True, 20, 42)
        job.result.assert_called_once_with(timeout=12.0)

        generated_image, masked_image = response["data"]
        assert generated_image.startswith("data:image/png;base64,")
        assert masked_image == "https://example.com/mask.png"

    @pytest.mark.asyncio
    async def test_string_endpoint_uses_api_name(self, gradio_client):
        job = MagicMock()
        job.result.return_value = "https://example.com/out.png"
        gradio_client.submit.return_value = job

        response = await GradioHandle(gradio_client, "m").predict("/tryon", ["x"], PredictOptions())

        gradio_client.submit.assert_called_once_with("x", api_name="/tryon")
        assert response == {"data": ["https://example.com/out.png"]}

    @pytest.mark.asyncio
    async def test_batched_not_supported(self, gradio_client):
        with pytest.raises(ValueError, match="Batched"):
            await GradioHandle(gradio_client, "m").predict(2, [], PredictOptions(batched=True))

        gradio_client.submit.assert_not_called()

    @pytest.mark.asyncio
    async def test_job_timeout_propagates(self, gradio_client):
        job = MagicMock()
        job.result.side_effect = TimeoutError()
        gradio_client.submit.return_value = job

        with pytest.raises(TimeoutError):
            await GradioHandle(gradio_client, "m").predict(2, [], PredictOptions(timeout=0.1))
