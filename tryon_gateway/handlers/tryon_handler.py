"""Request handler that drives one try-on through the remote model."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from ..config import GatewayConfig, GenerationDefaults
from ..errors import (
    InvalidRequestError,
    RemoteConnectionError,
    ServiceUnavailableError,
    TryOnError,
    UpstreamCallError,
    UpstreamProtocolError,
    describe,
)
from ..models import TryOnRequest, TryOnResult
from ..services.connection_manager import ConnectionLifecycleManager
from ..services.remote_client import PredictOptions
from ..utils.images import from_data_url, sniff_mime_type, to_data_url

logger = logging.getLogger(__name__)


class TryOnRequestHandler:
    """Validates try-on input and forwards it to the hosted model.

    Flow:
    1. Validate uploads and optional parameters (never touches the connection)
    2. Readiness gate, then acquire a handle from the lifecycle manager
    3. Encode both images and run a single predict call
    4. Shape the first two outputs into a TryOnResult
    """

    def __init__(
        self,
        manager: ConnectionLifecycleManager,
        defaults: GenerationDefaults | None = None,
        endpoint: int | str = 2,
        predict_timeout: float = 300.0,
        max_upload_bytes: int = 10 * 1024 * 1024,
        wait_for_initialization: bool = False,
    ):
        self.manager = manager
        self.defaults = defaults or GenerationDefaults()
        self.endpoint = endpoint
        self.predict_timeout = predict_timeout
        self.max_upload_bytes = max_upload_bytes
        self.wait_for_initialization = wait_for_initialization

    @classmethod
    def from_config(cls, config: GatewayConfig, manager: ConnectionLifecycleManager) -> "TryOnRequestHandler":
        return cls(
            manager=manager,
            defaults=config.generation,
            endpoint=config.remote.endpoint,
            predict_timeout=config.remote.predict_timeout,
            max_upload_bytes=config.max_upload_bytes,
            wait_for_initialization=config.wait_for_initialization,
        )

    def build_request(
        self,
        human_image: bytes | None,
        garment_image: bytes | None,
        *,
        denoising_steps: str | int | None = None,
        seed: str | int | None = None,
        message: str | None = None,
        use_auto_mask: str | bool | None = None,
        enhance_result: str | bool | None = None,
    ) -> TryOnRequest:
        """Validate raw inputs and apply defaults.

        Empty strings count as "not provided", matching how browsers submit
        blank form fields.

        Raises:
            InvalidRequestError: missing/empty/oversized/non-image files, or
                parameters that do not parse or are out of range.
        """
        images = {"humanImage": human_image, "garmentImage": garment_image}
        missing = [name for name, data in images.items() if data is None]
        if missing:
            raise InvalidRequestError(
                f"Missing required files: {' and '.join(missing)} "
                f"({'is' if len(missing) == 1 else 'are'} required)"
            )
        for name, data in images.items():
            self._check_image(name, data)

        fields: dict[str, Any] = {
            "humanImage": human_image,
            "garmentImage": garment_image,
            "message": self._or_default(message, self.defaults.message),
            "useAutoMask": self._or_default(use_auto_mask, self.defaults.use_auto_mask),
            "enhanceResult": self._or_default(enhance_result, self.defaults.enhance_result),
            "denoisingSteps": self._or_default(denoising_steps, self.defaults.denoising_steps),
            "seed": self._or_default(seed, self.defaults.seed),
        }
        try:
            return TryOnRequest.model_validate(fields)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            )
            raise InvalidRequestError(f"Invalid parameters: {problems}") from exc

    async def generate(self, request: TryOnRequest) -> TryOnResult:
        """Run one try-on against the remote model.

        Raises:
            ServiceUnavailableError: the connection is not ready.
            UpstreamProtocolError: the remote response had the wrong shape.
            UpstreamCallError: the predict call failed or timed out.
        """
        state = self.manager.status()
        if state.initializing and not self.wait_for_initialization:
            raise ServiceUnavailableError("Service is not ready", details=state.to_dict())

        try:
            handle = await self.manager.acquire()
        except RemoteConnectionError as exc:
            logger.error(f"Remote connection unavailable: {exc.message}")
            details = self.manager.status().to_dict()
            details["reason"] = exc.message
            raise ServiceUnavailableError("Service is not ready", details=details) from exc

        # Round-trip through data URLs to get typed blobs for the remote call
        human_blob = from_data_url(to_data_url(request.human_image))
        garment_blob = from_data_url(to_data_url(request.garment_image))

        image_editor_input = {
            "background": human_blob,
            "layers": [],
            "composite": None,
        }
        args = [
            image_editor_input,
            garment_blob,
            request.message,
            request.use_auto_mask,
            request.enhance_result,
            request.denoising_steps,
            request.seed,
        ]

        logger.info(
            f"Making prediction request (steps={request.denoising_steps}, seed={request.seed})..."
        )
        try:
            response = await handle.predict(
                self.endpoint,
                args,
                PredictOptions(batched=False, timeout=self.predict_timeout),
            )
            result = self._parse_response(response)
        except TryOnError:
            self.manager.invalidate(handle)
            raise
        except Exception as exc:
            logger.error(f"Error in try-on prediction: {describe(exc)}")
            # The handle may be poisoned; force re-initialization next time
            self.manager.invalidate(handle)
            raise UpstreamCallError(f"Try-on generation failed: {describe(exc)}") from exc

        logger.info("Prediction completed")
        return result

    def _check_image(self, name: str, data: bytes) -> None:
        if not data:
            raise InvalidRequestError(f"{name} is empty")
        if len(data) > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes / (1024 * 1024)
            raise InvalidRequestError(f"{name} exceeds the {limit_mb:g}MB upload limit")
        if sniff_mime_type(data) is None:
            raise InvalidRequestError(f"{name} must be an image")

    @staticmethod
    def _or_default(value: Any, default: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        return value

    @staticmethod
    def _parse_response(response: Any) -> TryOnResult:
        data = response.get("data") if isinstance(response, Mapping) else None
        if (
            not isinstance(data, Sequence)
            or isinstance(data, (str, bytes))
            or len(data) < 2
        ):
            raise UpstreamProtocolError(f"Invalid response from API: {response!r:.500}")
        try:
            return TryOnResult(generated_image=data[0], masked_image=data[1])
        except ValidationError as exc:
            raise UpstreamProtocolError(f"Invalid response from API: {response!r:.500}") from exc
