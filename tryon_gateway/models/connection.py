"""Connection lifecycle state models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class ConnectionStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class ConnectionState(BaseModel):
    """Point-in-time snapshot of the connection manager."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    status: ConnectionStatus = ConnectionStatus.UNINITIALIZED
    attempts: int = 0
    max_attempts: int
    last_attempt: datetime | None = None
    error: str | None = Field(default=None, description="Message of the last failed attempt")
    next_retry_at: datetime | None = None

    @computed_field
    @property
    def initialized(self) -> bool:
        return self.status is ConnectionStatus.READY

    @computed_field
    @property
    def initializing(self) -> bool:
        return self.status is ConnectionStatus.INITIALIZING

    @computed_field(alias="retryPending")
    @property
    def retry_pending(self) -> bool:
        return self.next_retry_at is not None

    def to_dict(self) -> dict:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
