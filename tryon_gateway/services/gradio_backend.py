"""Gradio client binding for the hosted IDM-VTON Space."""

import asyncio
import logging
import tempfile
import uuid
from pathlib import Path
from typing import Any

import httpx
from gradio_client import Client, handle_file

from ..utils.images import ImageBlob, file_to_data_url
from .remote_client import ClientOptions, PredictOptions

logger = logging.getLogger(__name__)


class GradioHandle:
    """Connected Gradio client able to run try-on predictions.

    ``gradio_client`` is synchronous, so every network call is pushed to a
    worker thread to keep the event loop free.
    """

    def __init__(self, client: Client, model_id: str):
        self.client = client
        self.model_id = model_id

    async def predict(
        self,
        endpoint: int | str,
        args: list[Any],
        options: PredictOptions,
    ) -> dict[str, Any]:
        if options.batched:
            raise ValueError("Batched predictions are not supported by the Gradio client")
        return await asyncio.to_thread(self._predict_sync, endpoint, args, options.timeout)

    def _predict_sync(self, endpoint: int | str, args: list[Any], timeout: float) -> dict[str, Any]:
        # Blobs must stay on disk until the job has uploaded them
        with tempfile.TemporaryDirectory() as tmpdir:
            payload = [self._prepare(arg, Path(tmpdir)) for arg in args]
            if isinstance(endpoint, str):
                job = self.client.submit(*payload, api_name=endpoint)
            else:
                job = self.client.submit(*payload, fn_index=endpoint)
            logger.info(f"Submitted prediction to {self.model_id} (endpoint={endpoint!r})")
            outputs = job.result(timeout=timeout)

        if not isinstance(outputs, (list, tuple)):
            outputs = [outputs]
        return {"data": [self._export(item) for item in outputs]}

    def _prepare(self, value: Any, tmpdir: Path) -> Any:
        """Replace ImageBlobs (at any depth) with uploaded file references."""
        if isinstance(value, ImageBlob):
            path = tmpdir / f"upload_{uuid.uuid4().hex[:8]}{value.suffix}"
            path.write_bytes(value.data)
            return handle_file(str(path))
        if isinstance(value, dict):
            return {key: self._prepare(item, tmpdir) for key, item in value.items()}
        if isinstance(value, list):
            return [self._prepare(item, tmpdir) for item in value]
        return value

    def _export(self, value: Any) -> Any:
        """Turn a Gradio output into a string the API can return."""
        if isinstance(value, dict):
            if value.get("url"):
                return value["url"]
            value = value.get("path")
        if isinstance(value, str):
            path = Path(value)
            if not value.startswith(("http://", "https://", "data:")) and path.is_file():
                return file_to_data_url(path)
        return value


class GradioInferenceClient:
    """Opens ``gradio_client`` connections to a hosted Space."""

    async def connect(self, model_id: str, options: ClientOptions) -> GradioHandle:
        logger.info(
            f"Connecting to {model_id} "
            f"(token={'yes' if options.hf_token else 'no'}, timeout={options.timeout}s)"
        )
        client = await asyncio.to_thread(
            Client,
            model_id,
            hf_token=options.hf_token,
            verbose=options.logging,
            httpx_kwargs={"timeout": httpx.Timeout(options.timeout)},
        )
        return GradioHandle(client, model_id)
