"""Pause a Scalar product to obtain a transactionally-consistent period."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from safir.datetime import current_datetime, format_datetime_for_logging
from structlog.stdlib import BoundLogger

from ..constants import MAX_UNPAUSE_RETRY_COUNT
from ..exceptions import (
    GetTargetAfterPauseFailedError,
    PauseCycleError,
    PauseFailedError,
    PauserError,
    StatusCheckFailedError,
    StatusUnmatchedError,
    UnpauseFailedError,
)
from ..models.domain.target import PausedDuration, TargetSnapshot
from ..storage.admin import AdminCoordinator
from .selector import TargetSelector

__all__ = ["Pauser", "compose_pause_error"]

_BACKUP_UNUSABLE = (
    "You cannot use the backup that was taken during this pause duration."
    " You need to retry the pause operation from the beginning to take a"
    " backup."
)


@dataclass
class _CycleOutcome:
    """What happened inside one pause cycle."""

    paused_duration: PausedDuration | None = None
    pause_error: Exception | None = None
    unpause_error: Exception | None = None
    get_target_error: Exception | None = None
    status_check_error: Exception | None = None
    status_differences: list[str] | None = None


class Pauser:
    """Pause and unpause every pod of a Scalar product.

    While the product is paused it neither starts nor commits transactions,
    so a backup of its underlying databases taken at any point inside the
    returned period is transactionally consistent.

    Parameters
    ----------
    selector
        Resolves the Helm release into its target pods.
    coordinator_factory
        Builds an admin coordinator for the pods of a target.
    logger
        Logger to use.
    max_unpause_retry_count
        Total number of unpause attempts before giving up.

    Raises
    ------
    ValueError
        Raised if ``max_unpause_retry_count`` is less than one.
    """

    def __init__(
        self,
        selector: TargetSelector,
        coordinator_factory: Callable[[TargetSnapshot], AdminCoordinator],
        logger: BoundLogger,
        *,
        max_unpause_retry_count: int = MAX_UNPAUSE_RETRY_COUNT,
    ) -> None:
        if max_unpause_retry_count < 1:
            raise ValueError("max_unpause_retry_count must be at least 1")
        self._selector = selector
        self._coordinator_factory = coordinator_factory
        self._logger = logger
        self._max_unpause_retry_count = max_unpause_retry_count

    async def pause(
        self, pause_duration: int, max_pause_wait_time: int | None = None
    ) -> PausedDuration:
        """Pause the target pods for a while, then unpause them.

        Once the pause request has been sent, the cycle always runs to the
        end, unpausing the pods, even if the calling task is cancelled. The
        cancellation is then propagated.

        Parameters
        ----------
        pause_duration
            How long to keep the pods paused, in milliseconds.
        max_pause_wait_time
            Maximum time in milliseconds the pods wait for outstanding
            requests before pausing, or `None` for the product default.

        Returns
        -------
        PausedDuration
            Period during which every pod was paused and nothing about the
            target changed.

        Raises
        ------
        PauseCycleError
            Raised if the cycle did not produce a usable period. Check
            ``unpause_failed`` to see whether the pods may still be paused.
        PauserError
            Raised if the cycle could not be started. Nothing was paused.
        ValueError
            Raised if ``pause_duration`` is less than one millisecond.
        """
        if pause_duration < 1:
            msg = "pause_duration must be greater than 0 milliseconds"
            raise ValueError(msg)

        try:
            target = await self._selector.select()
        except Exception as e:
            msg = "Failed to find the target pods to pause"
            raise PauserError(msg) from e
        try:
            coordinator = self._coordinator_factory(target)
        except Exception as e:
            msg = "Failed to initialize the request coordinator"
            raise PauserError(msg) from e

        logger = self._logger.bind(deployment=target.deployment.name)
        region = asyncio.create_task(
            self._run_cycle(
                target, coordinator, pause_duration, max_pause_wait_time
            )
        )
        cancelled = False
        while not region.done():
            try:
                await asyncio.shield(region)
            except asyncio.CancelledError:
                if region.cancelled():
                    raise
                cancelled = True
                logger.warning("Cancelled while paused, finishing the cycle")
        outcome = region.result()

        error = compose_pause_error(
            unpause_error=outcome.unpause_error,
            pause_error=outcome.pause_error,
            get_target_error=outcome.get_target_error,
            status_check_error=outcome.status_check_error,
            status_differences=outcome.status_differences,
            deployment=target.deployment.name,
            paused_duration=outcome.paused_duration,
        )
        if error and error.unpause_failed:
            logger.error(str(error))
        if cancelled:
            if error:
                logger.warning("Pause cycle failed", error=str(error))
            raise asyncio.CancelledError
        if error:
            raise error

        # No error means the pause succeeded, so the duration was recorded.
        assert outcome.paused_duration
        duration = outcome.paused_duration
        logger.info(
            "Paused target pods",
            start=format_datetime_for_logging(duration.start_time),
            end=format_datetime_for_logging(duration.end_time),
        )
        return duration

    async def unpause_with_retry(
        self, coordinator: AdminCoordinator, max_retry_count: int
    ) -> None:
        """Unpause the target pods, retrying on failure.

        Parameters
        ----------
        coordinator
            Coordinator for the target pods.
        max_retry_count
            Total number of attempts.

        Raises
        ------
        Exception
            The error of the last attempt, if every attempt failed.
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                await coordinator.unpause()
            except Exception as e:
                self._logger.warning(
                    "Unpause attempt failed",
                    attempt=attempt,
                    max_attempts=max_retry_count,
                    error=str(e),
                )
                if attempt >= max_retry_count:
                    raise
            else:
                return

    async def _run_cycle(
        self,
        target: TargetSnapshot,
        coordinator: AdminCoordinator,
        pause_duration: int,
        max_pause_wait_time: int | None,
    ) -> _CycleOutcome:
        outcome = _CycleOutcome()
        try:
            await coordinator.pause(
                drain=True, max_pause_wait_time=max_pause_wait_time
            )
            start = current_datetime(microseconds=True)
            self._logger.debug("Paused", pause_duration=pause_duration)
            await asyncio.sleep(pause_duration / 1000)
            end = current_datetime(microseconds=True)
            outcome.paused_duration = PausedDuration(start, end)
        except Exception as e:
            outcome.pause_error = e

        try:
            await self.unpause_with_retry(
                coordinator, self._max_unpause_retry_count
            )
        except Exception as e:
            outcome.unpause_error = e

        try:
            after = await self._selector.select()
        except Exception as e:
            outcome.get_target_error = e
            return outcome

        try:
            differences = target.get_status().diff(after.get_status())
        except Exception as e:
            outcome.status_check_error = e
        else:
            outcome.status_differences = differences
        return outcome


def compose_pause_error(
    *,
    unpause_error: Exception | None,
    pause_error: Exception | None,
    get_target_error: Exception | None,
    status_check_error: Exception | None,
    status_differences: list[str] | None,
    deployment: str,
    paused_duration: PausedDuration | None,
) -> PauseCycleError | None:
    """Turn the failures of a pause cycle into one exception.

    The most severe failure becomes the returned exception, with the raw
    error as its cause. Every other failure is added to its
    ``secondary_errors``, most severe first. Failures are ranked, most
    severe first: unpause, pause, resolving the target after the pause,
    comparing statuses, and finally a changed status.

    Parameters
    ----------
    unpause_error
        Error of the last unpause attempt.
    pause_error
        Error while pausing or waiting.
    get_target_error
        Error while resolving the target after the pause.
    status_check_error
        Error while comparing the target before and after the pause.
    status_differences
        Changes of the target during the pause. Empty or `None` means
        nothing changed.
    deployment
        Name of the deployment of the target pods.
    paused_duration
        Period during which the pods were paused, if the pause succeeded.

    Returns
    -------
    PauseCycleError or None
        Exception to raise, or `None` if the cycle succeeded.
    """
    errors: list[PauseCycleError] = []
    if unpause_error:
        msg = (
            "Pause and unpause operation failed."
            if pause_error
            else "Unpause operation failed."
        )
        msg += (
            " Scalar products might still be in a paused state. You must"
            " restart related pods by using the `kubectl rollout restart"
            f" deployment {deployment}` command to unpause all pods."
        )
        only_failure = not (
            pause_error
            or get_target_error
            or status_check_error
            or status_differences
        )
        if only_failure and paused_duration:
            start = format_datetime_for_logging(paused_duration.start_time)
            end = format_datetime_for_logging(paused_duration.end_time)
            msg += (
                " However, the pause operations for taking backup succeeded."
                " You can use a backup that was taken during this pause"
                f" duration: Start Time = {start}, End Time = {end}."
            )
        elif not only_failure:
            msg += " " + _BACKUP_UNUSABLE
        unpause = UnpauseFailedError(msg, deployment=deployment)
        errors.append(_with_cause(unpause, unpause_error))
    if pause_error:
        msg = f"Pause operation failed: {pause_error!s}"
        errors.append(_with_cause(PauseFailedError(msg), pause_error))
    if get_target_error:
        msg = (
            "Failed to find the target pods to examine if the target pods"
            f" were updated during the pause: {get_target_error!s}"
        )
        get_target = GetTargetAfterPauseFailedError(msg)
        errors.append(_with_cause(get_target, get_target_error))
    if status_check_error:
        msg = f"Status check failed: {status_check_error!s}"
        status_check = StatusCheckFailedError(msg)
        errors.append(_with_cause(status_check, status_check_error))
    if status_differences:
        msg = (
            "The target pods were updated or restarted during the pause: "
            + "; ".join(status_differences)
        )
        errors.append(StatusUnmatchedError(msg, status_differences))

    if not errors:
        return None
    primary = errors[0]
    if not primary.unpause_failed:
        primary = _as_primary(primary)
    primary.secondary_errors.extend(errors[1:])
    return primary


def _as_primary(error: PauseCycleError) -> PauseCycleError:
    """Reword a failure whose unpause succeeded for use as the main error."""
    message = f"{error!s}. Unpause succeeded. {_BACKUP_UNUSABLE}"
    if isinstance(error, StatusUnmatchedError):
        primary: PauseCycleError = StatusUnmatchedError(
            message, error.differences
        )
    else:
        primary = type(error)(message)
    primary.__cause__ = error.__cause__
    return primary


def _with_cause(error: PauseCycleError, cause: Exception) -> PauseCycleError:
    error.__cause__ = cause
    return error
