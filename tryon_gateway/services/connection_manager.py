"""Connection lifecycle management for the remote try-on model."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from ..config import GatewayConfig, RetryConfig
from ..errors import InitializationError, RemoteConnectionError, describe
from ..models import ConnectionState, ConnectionStatus
from .remote_client import ClientOptions, InferenceClient, InferenceHandle

logger = logging.getLogger(__name__)


class ConnectionLifecycleManager:
    """Owns the shared connection handle to the remote inference service.

    Callers use :meth:`acquire`. A ready handle is returned straight away.
    While an attempt is in flight every caller awaits that same attempt, so
    the remote service only ever sees one connect at a time. Failed
    attempts are retried in the background with exponential backoff until
    ``max_attempts`` is reached, after which the manager stays ``failed``
    until :meth:`reset` is called.
    """

    def __init__(
        self,
        client: InferenceClient,
        model_id: str,
        options: ClientOptions,
        retry: RetryConfig | None = None,
        connect_timeout: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.model_id = model_id
        self.options = options
        self.retry = retry or RetryConfig()
        self.connect_timeout = connect_timeout
        self._sleep = sleep

        self._status = ConnectionStatus.UNINITIALIZED
        self._handle: InferenceHandle | None = None
        self._attempts = 0
        self._last_attempt: datetime | None = None
        self._last_error: str | None = None
        self._next_retry_at: datetime | None = None

        self._inflight: asyncio.Task | None = None
        self._retry_task: asyncio.Task | None = None

    @classmethod
    def from_config(cls, config: GatewayConfig, client: InferenceClient) -> "ConnectionLifecycleManager":
        """Build a manager from gateway settings."""
        options = ClientOptions(
            hf_token=config.hf_token,
            timeout=config.remote.predict_timeout,
            logging=config.remote.verbose,
        )
        return cls(
            client=client,
            model_id=config.remote.model_id,
            options=options,
            retry=config.retry,
            connect_timeout=config.remote.connect_timeout,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire(self) -> InferenceHandle:
        """Return a ready handle, joining or starting a connect attempt if needed.

        Raises:
            InitializationError: retries are exhausted (until :meth:`reset`).
            RemoteConnectionError: the attempt failed or a retry is pending.
        """
        if self._status is ConnectionStatus.READY and self._handle is not None:
            return self._handle

        if self._inflight is None:
            if self._status is ConnectionStatus.FAILED:
                raise InitializationError(
                    f"Connection to {self.model_id} failed after {self._attempts} attempts: "
                    f"{self._last_error}"
                )
            if self._retry_task is not None:
                raise RemoteConnectionError(
                    f"Connection to {self.model_id} is unavailable; "
                    f"retry {self._attempts + 1} scheduled at {self._next_retry_at.isoformat()}"
                )
            self._begin_attempt()

        # Shield so a cancelled caller never cancels the shared attempt
        return await asyncio.shield(self._inflight)

    def status(self) -> ConnectionState:
        return ConnectionState(
            status=self._status,
            attempts=self._attempts,
            max_attempts=self.retry.max_attempts,
            last_attempt=self._last_attempt,
            error=self._last_error,
            next_retry_at=self._next_retry_at,
        )

    def invalidate(self, handle: InferenceHandle | None = None) -> None:
        """Drop the cached handle so the next acquire() reconnects.

        If ``handle`` is given and is no longer the cached one, the cache is
        left alone: another request has already reconnected.
        """
        if self._status is not ConnectionStatus.READY:
            return
        if handle is not None and handle is not self._handle:
            return
        logger.warning(f"Invalidating connection to {self.model_id}")
        self._handle = None
        self._status = ConnectionStatus.UNINITIALIZED

    def start(self) -> None:
        """Kick off a background connect attempt (used at application startup)."""
        if self._status is not ConnectionStatus.UNINITIALIZED or self._inflight or self._retry_task:
            return
        task = self._begin_attempt()
        task.add_done_callback(self._log_background_outcome)

    def reset(self) -> ConnectionState:
        """Clear failure state so the next acquire() starts over."""
        self._cancel_retry()
        self._attempts = 0
        self._last_error = None
        if self._status is ConnectionStatus.FAILED:
            self._status = ConnectionStatus.UNINITIALIZED
        logger.info(f"Connection state for {self.model_id} reset")
        return self.status()

    async def aclose(self) -> None:
        """Cancel background work and drop the handle."""
        self._cancel_retry()
        inflight, self._inflight = self._inflight, None
        if inflight is not None and not inflight.done():
            inflight.cancel()
            try:
                await inflight
            except (asyncio.CancelledError, RemoteConnectionError):
                pass
        self._handle = None
        self._status = ConnectionStatus.UNINITIALIZED

    def retry_delay(self, attempt: int) -> float:
        """Backoff delay after the given (1-based) failed attempt."""
        return min(self.retry.base_delay * 2 ** (attempt - 1), self.retry.max_delay)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_attempt(self) -> asyncio.Task:
        self._status = ConnectionStatus.INITIALIZING
        self._last_attempt = datetime.now(timezone.utc)
        self._next_retry_at = None
        self._inflight = asyncio.create_task(self._connect())
        return self._inflight

    async def _connect(self) -> InferenceHandle:
        attempt = self._attempts + 1
        logger.info(f"Connecting to {self.model_id} (attempt {attempt}/{self.retry.max_attempts})...")
        try:
            handle = await asyncio.wait_for(
                self.client.connect(self.model_id, self.options),
                timeout=self.connect_timeout,
            )
            if handle is None or not callable(getattr(handle, "predict", None)):
                raise RemoteConnectionError("Invalid client initialization: handle has no predict()")
        except asyncio.CancelledError:
            self._status = ConnectionStatus.UNINITIALIZED
            raise
        except Exception as exc:
            raise self._record_failure(exc) from exc
        else:
            self._handle = handle
            self._status = ConnectionStatus.READY
            self._attempts = 0
            self._last_error = None
            logger.info(f"Connected to {self.model_id}")
            return handle
        finally:
            self._inflight = None

    def _record_failure(self, exc: Exception) -> RemoteConnectionError:
        """Update state after a failed attempt and return the error for callers."""
        self._handle = None
        self._attempts += 1
        self._last_error = describe(exc)

        if self._attempts >= self.retry.max_attempts:
            self._status = ConnectionStatus.FAILED
            logger.error(
                f"Giving up on {self.model_id} after {self._attempts} attempts: {self._last_error}"
            )
            return InitializationError(
                f"Connection to {self.model_id} failed after {self._attempts} attempts: "
                f"{self._last_error}"
            )

        delay = self.retry_delay(self._attempts)
        self._status = ConnectionStatus.UNINITIALIZED
        self._next_retry_at = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self._retry_task = asyncio.create_task(self._retry_after(delay))
        logger.warning(
            f"Connection attempt {self._attempts} to {self.model_id} failed: {self._last_error}; "
            f"retrying in {delay:.1f}s"
        )
        return RemoteConnectionError(f"Failed to connect to {self.model_id}: {self._last_error}")

    async def _retry_after(self, delay: float) -> None:
        await self._sleep(delay)
        self._retry_task = None
        if self._status is not ConnectionStatus.UNINITIALIZED or self._inflight is not None:
            return
        try:
            await self._begin_attempt()
        except RemoteConnectionError:
            # Already logged; the next retry (if any) is scheduled
            pass

    def _cancel_retry(self) -> None:
        task, self._retry_task = self._retry_task, None
        self._next_retry_at = None
        if task is not None:
            task.cancel()

    @staticmethod
    def _log_background_outcome(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Background connection attempt failed: {describe(exc)}")
