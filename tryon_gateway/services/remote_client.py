"""Capability contract for the remote inference backend."""

import logging
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class ClientOptions(BaseModel):
    """Options used when opening a connection to the hosted model."""
    hf_token: str | None = Field(default=None, repr=False)
    timeout: float = 300.0  # seconds
    logging: bool = True

    @field_validator("hf_token")
    @classmethod
    def _require_hf_prefix(cls, value: str | None) -> str | None:
        if value and not value.startswith("hf_"):
            logger.warning("Ignoring Hugging Face token without 'hf_' prefix")
            return None
        return value or None


class PredictOptions(BaseModel):
    """Per-call options for a predict request."""
    batched: bool = False
    timeout: float = 300.0  # seconds


@runtime_checkable
class InferenceHandle(Protocol):
    """A verified connection able to run predictions."""

    async def predict(
        self,
        endpoint: int | str,
        args: list[Any],
        options: PredictOptions,
    ) -> dict[str, Any]:
        """Run one inference; returns a mapping with a ``data`` sequence."""
        ...


class InferenceClient(Protocol):
    """Factory that opens connections to a hosted model."""

    async def connect(self, model_id: str, options: ClientOptions) -> InferenceHandle:
        ...
