"""
Polling helpers for long-running console jobs.

`JobPoller` is the single submit-and-wait loop every command goes through;
`PendingResultPoller` resolves the 202 / pending-result exchanges used by
package discovery and application import.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from pydantic import ValidationError

from ..exceptions import (
    ApiCallException,
    JobAbortedException,
    PendingResultTimeoutException,
)
from ..models.delivery_models import PendingResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[Any]]

DEFAULT_POLL_INTERVAL = 10.0
DEFAULT_PENDING_INTERVAL = 5.0
DEFAULT_PENDING_MAX_ATTEMPTS = 240


class CancellationToken:
    """Cooperative cancel flag shared by the caller and the polling loop."""

    def __init__(self):
        self._event = asyncio.Event()
        # Set while a poll loop watches this token
        self.polling = False

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> None:
        """Sleep for ``seconds``, returning early once the token is cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass


class JobPoller(Generic[T]):
    """Fixed-interval poll loop for a remote job.

    The loop fetches first and sleeps afterwards, so a job that is already
    terminal is returned without waiting. There is no iteration cap.
    """

    def __init__(self, interval: float = DEFAULT_POLL_INTERVAL, sleep: Optional[SleepFunc] = None):
        self.interval = interval
        self._sleep = sleep

    async def poll(
        self,
        fetch_status: Callable[[], Awaitable[T]],
        *,
        is_terminal: Callable[[T], bool],
        step_of: Optional[Callable[[T], Optional[str]]] = None,
        on_step_change: Optional[Callable[[Optional[str], Optional[str], T], Any]] = None,
        on_poll: Optional[Callable[[T], Awaitable[Any]]] = None,
        cancel: Optional[Callable[[], Awaitable[Any]]] = None,
        token: Optional[CancellationToken] = None,
        job_guid: Optional[str] = None,
    ) -> T:
        """Poll ``fetch_status`` until ``is_terminal`` holds.

        Args:
            fetch_status: Coroutine function returning the current status
            is_terminal: Predicate telling when to stop
            step_of: Extracts the current step from a status
            on_step_change: Called once per observed step change
            on_poll: Awaited after every fetch (log streaming)
            cancel: Remote cancel, attempted once on interruption
            token: Cancellation token checked every iteration
            job_guid: Used in log lines and the aborted exception

        Returns:
            The terminal status

        Raises:
            JobAbortedException: If the token was cancelled or the task interrupted
        """
        token = token or CancellationToken()
        previous_step: Optional[str] = None

        token.polling = True
        try:
            while True:
                if token.cancelled:
                    break

                status = await fetch_status()

                if step_of is not None:
                    current_step = step_of(status)
                    if current_step != previous_step:
                        if on_step_change is not None:
                            on_step_change(previous_step, current_step, status)
                        previous_step = current_step

                if on_poll is not None:
                    await on_poll(status)

                if is_terminal(status):
                    return status

                if self._sleep is not None:
                    await self._sleep(self.interval)
                else:
                    await token.sleep(self.interval)

        except asyncio.CancelledError:
            logger.warning("Polling interrupted")
            cancelled = await self._cancel_remote(cancel, job_guid)
            raise JobAbortedException(job_guid=job_guid, cancelled=cancelled)
        finally:
            token.polling = False

        logger.warning("Polling cancelled")
        cancelled = await self._cancel_remote(cancel, job_guid)
        raise JobAbortedException(job_guid=job_guid, cancelled=cancelled)

    async def _cancel_remote(
        self, cancel: Optional[Callable[[], Awaitable[Any]]], job_guid: Optional[str]
    ) -> bool:
        if cancel is None:
            return False
        try:
            await cancel()
            logger.info(f"Cancelled job {job_guid or ''}".rstrip())
            return True
        except Exception as e:
            logger.warning(f"Unable to cancel job {job_guid or ''}: {e}")
            return False


class PendingResultPoller:
    """Resolves a 200 / 202 response into the final result body."""

    def __init__(
        self,
        interval: float = DEFAULT_PENDING_INTERVAL,
        max_attempts: int = DEFAULT_PENDING_MAX_ATTEMPTS,
        sleep: Optional[SleepFunc] = None,
    ):
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep or asyncio.sleep

    async def resolve(self, initial, fetch_pending: Callable[[str], Awaitable[Any]]) -> Any:
        """Return the body of the first 200 response.

        Args:
            initial: Response of the original request (status + data)
            fetch_pending: Coroutine function fetching a pending result by GUID

        Raises:
            ApiCallException: On any status other than 200 or 202
            PendingResultTimeoutException: If still pending after ``max_attempts``
        """
        if initial.status == 200:
            return initial.data
        _check_pending_status(initial)

        try:
            pending = PendingResult.model_validate(initial.data)
        except ValidationError as e:
            raise ApiCallException(
                f"Invalid pending result: {e}", status_code=initial.status, response_data=initial.data
            )
        logger.debug(f"Waiting for pending result {pending.guid}")

        for _ in range(self.max_attempts):
            await self._sleep(self.interval)
            response = await fetch_pending(pending.guid)
            if response.status == 200:
                return response.data
            _check_pending_status(response)

        raise PendingResultTimeoutException(pending.guid, self.max_attempts)


def _check_pending_status(response) -> None:
    if response.status != 202:
        raise ApiCallException(
            f"Unexpected response status {response.status}",
            status_code=response.status,
            response_data=response.data,
        )
