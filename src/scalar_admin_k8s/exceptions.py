"""Exceptions for the Kubernetes pause coordinator."""

from __future__ import annotations

from datetime import datetime
from typing import Self, override

from kubernetes_asyncio.client import ApiException
from safir.datetime import format_datetime_for_logging
from safir.slack.blockkit import (
    SlackBaseField,
    SlackCodeBlock,
    SlackException,
    SlackMessage,
    SlackTextBlock,
    SlackTextField,
)
from safir.slack.sentry import SentryEventInfo

__all__ = [
    "AdminPortNotFoundError",
    "AdminPortNotNumericError",
    "AdminRequestError",
    "AdminServiceNotFoundError",
    "AmbiguousAdminServiceError",
    "AmbiguousDeploymentError",
    "DeploymentNotFoundError",
    "GetTargetAfterPauseFailedError",
    "KubernetesError",
    "MixedProductsError",
    "NoPodsFoundError",
    "NoProductPodsError",
    "OperationTimeoutError",
    "PauseCycleError",
    "PauseFailedError",
    "PauserError",
    "PodNotReadyError",
    "StatusCheckFailedError",
    "StatusUnmatchedError",
    "TargetNotFoundError",
    "TargetSelectionError",
    "UnpauseFailedError",
]


class KubernetesError(SlackException):
    """An API call to Kubernetes failed.

    Parameters
    ----------
    message
        Summary of error.
    namespace
        Namespace of object being acted on.
    name
        Name of object being acted on.
    kind
        Kind of object being acted on.
    status
        Status code of failure, if any.
    body
        Body of failure message, if any.
    """

    @classmethod
    def from_exception(
        cls,
        message: str,
        exc: ApiException,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
    ) -> Self:
        """Create an exception from a Kubernetes API exception.

        Parameters
        ----------
        message
            Brief explanation of what was being attempted.
        exc
            Kubernetes API exception.
        kind
            Kind of object being acted on.
        namespace
            Namespace of object being acted on.
        name
            Name of object being acted on.

        Returns
        -------
        KubernetesError
            Newly-created exception.
        """
        return cls(
            message,
            kind=kind,
            namespace=namespace,
            name=name,
            status=exc.status,
            body=exc.body if exc.body else exc.reason,
        )

    def __init__(
        self,
        message: str,
        *,
        kind: str | None = None,
        namespace: str | None = None,
        name: str | None = None,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.namespace = namespace
        self.name = name
        self.status = status
        self.body = body

    @override
    def __str__(self) -> str:
        result = self._summary()
        if self.body:
            result += f": {self.body}"
        return result

    @override
    def to_slack(self) -> SlackMessage:
        """Convert to a Slack message for Slack alerting.

        Returns
        -------
        safir.slack.blockkit.SlackMessage
            Slack message suitable for posting as an alert.
        """
        message = super().to_slack()
        message.message = self._summary()
        if self.status:
            field = SlackTextField(heading="Status", text=str(self.status))
            message.fields.append(field)
        if self.kind:
            if self.namespace:
                obj = f"{self.kind} in namespace {self.namespace}"
            else:
                obj = self.kind
            message.blocks.append(SlackTextBlock(heading="Object", text=obj))
        if self.body:
            code = SlackCodeBlock(heading="Error", code=self.body)
            message.blocks.append(code)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        """Return a collection of Sentry event metadata about the exception.

        Returns
        -------
        safir.slack.sentry.SentryEventInfo
            Sentry event metadata for use with \
            `~safir.sentry.before_send_handler`
        """
        info = super().to_sentry()
        if self.status:
            info.tags["status"] = str(self.status)
        if self.kind:
            info.tags["kind"] = self.kind
        if self.namespace:
            info.tags["namespace"] = self.namespace
        if self.body:
            info.attachments["body"] = self.body
        return info

    def _summary(self) -> str:
        """Summarize the exception.

        Produces a single-line summary, used for the main part of the Slack
        message and part of the stringification.
        """
        result = self.message
        if self.kind or self.status:
            result += " ("
            if self.kind:
                if self.namespace:
                    result += f"{self.kind} in {self.namespace}"
                else:
                    result += self.kind
                if self.status:
                    result += ", "
            if self.status:
                result += f"status {self.status}"
            result += ")"
        return result


class OperationTimeoutError(SlackException):
    """Wraps `TimeoutError` with additional context and Slack support.

    Parameters
    ----------
    operation
        Operation that timed out.
    started_at
        Start time of the operation.
    failed_at
        Time at which the operation timed out.
    """

    def __init__(
        self, operation: str, *, started_at: datetime, failed_at: datetime
    ) -> None:
        self.started_at = started_at
        elapsed = failed_at - started_at
        msg = f"{operation} timed out after {elapsed.total_seconds()}s"
        super().__init__(msg, failed_at=failed_at)

    @override
    def to_slack(self) -> SlackMessage:
        """Format the exception as a Slack message.

        Returns
        -------
        safir.slack.blockkit.SlackMessage
            Slack message suitable for posting with
            `~safir.slack.webhook.SlackWebhookClient`.
        """
        started_at = format_datetime_for_logging(self.started_at)
        failed_at = format_datetime_for_logging(self.failed_at)
        fields: list[SlackBaseField] = [
            SlackTextField(heading="Started at", text=started_at),
            SlackTextField(heading="Failed at", text=failed_at),
        ]
        return SlackMessage(message=str(self), fields=fields)


class TargetSelectionError(SlackException):
    """The pods of a Helm release could not be resolved into one target.

    Parameters
    ----------
    message
        Summary of error.
    namespace
        Namespace searched.
    release
        Helm release name searched for.
    """

    def __init__(self, message: str, *, namespace: str, release: str) -> None:
        super().__init__(message)
        self.namespace = namespace
        self.release = release

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        text = f"{self.release} (namespace: {self.namespace})"
        block = SlackTextBlock(heading="Helm release", text=text)
        message.blocks.append(block)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        info = super().to_sentry()
        info.tags["namespace"] = self.namespace
        info.tags["release"] = self.release
        return info


class NoPodsFoundError(TargetSelectionError):
    """The Helm release did not create any pod."""


class MixedProductsError(TargetSelectionError):
    """Pods of the same Helm release run different Scalar products."""


class NoProductPodsError(TargetSelectionError):
    """None of the pods of the Helm release runs a known Scalar product."""


class DeploymentNotFoundError(TargetSelectionError):
    """The Helm release did not create a deployment for the product."""


class AmbiguousDeploymentError(TargetSelectionError):
    """The Helm release created more than one deployment for the product."""


class AdminServiceNotFoundError(TargetSelectionError):
    """No service exposing the admin interface was found."""


class AmbiguousAdminServiceError(TargetSelectionError):
    """More than one service exposing the admin interface was found."""


class AdminPortNotFoundError(TargetSelectionError):
    """The admin service does not list the admin port of the product."""


class AdminPortNotNumericError(TargetSelectionError):
    """The admin port of the admin service refers to a named port."""


class TargetNotFoundError(TargetSelectionError):
    """Resolving the target pods failed.

    This is the only selection error raised out of the target selector. The
    specific reason is available as the exception cause.
    """


class PodNotReadyError(SlackException):
    """A target pod has no IP address and cannot be contacted.

    Parameters
    ----------
    pod
        Name of the pod.
    """

    def __init__(self, pod: str) -> None:
        super().__init__(f"Pod {pod} has no IP address")
        self.pod = pod


class AdminRequestError(SlackException):
    """An admin request failed on at least one pod.

    Parameters
    ----------
    message
        Summary of error.
    failures
        Mapping of endpoint (``ip:port``) to the error seen on that endpoint.
    """

    def __init__(self, message: str, failures: dict[str, str]) -> None:
        self.failures = failures
        self.report = ", ".join(f"{k}: {v}" for k, v in failures.items())
        super().__init__(f"{message}: {self.report}")

    @override
    def to_slack(self) -> SlackMessage:
        """Format this exception as a slack message."""
        message = super().to_slack()
        block = SlackTextBlock(heading="Failed endpoints", text=self.report)
        message.attachments.append(block)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        """Return Sentry metadata for this exception."""
        info = super().to_sentry()
        info.contexts["failed_endpoints"] = self.failures
        return info


class PauserError(SlackException):
    """The pause operation could not be started.

    Raised when something fails before any pause request may have reached
    the target pods, so nothing has to be undone.
    """


class PauseCycleError(SlackException):
    """A pause cycle finished without a usable paused period.

    Only one of these is raised per pause cycle. If more than one step of
    the cycle failed, the most severe failure is raised and the others are
    available in ``secondary_errors``, most severe first.

    Parameters
    ----------
    message
        Summary of error.
    """

    unpause_failed: bool = False
    """Whether the target pods may still be paused."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.secondary_errors: list[PauseCycleError] = []

    @override
    def to_slack(self) -> SlackMessage:
        """Convert to a Slack message for Slack alerting.

        Returns
        -------
        safir.slack.blockkit.SlackMessage
            Slack message suitable for posting as an alert.
        """
        message = super().to_slack()
        if self.__cause__:
            cause = f"{type(self.__cause__).__name__}: {self.__cause__!s}"
            message.blocks.append(SlackCodeBlock(heading="Cause", code=cause))
        if self.secondary_errors:
            text = "\n".join(
                f"{type(e).__name__}: {e!s}" for e in self.secondary_errors
            )
            block = SlackTextBlock(heading="Additional failures", text=text)
            message.blocks.append(block)
        return message

    @override
    def to_sentry(self) -> SentryEventInfo:
        info = super().to_sentry()
        info.tags["unpause_failed"] = str(self.unpause_failed).lower()
        if self.secondary_errors:
            info.contexts["secondary_errors"] = {
                type(e).__name__: str(e) for e in self.secondary_errors
            }
        return info


class UnpauseFailedError(PauseCycleError):
    """Unpausing the target pods failed after all retries.

    The Scalar product may stay paused until its pods are restarted.

    Parameters
    ----------
    message
        Summary of error.
    deployment
        Name of the deployment whose pods have to be restarted.
    """

    unpause_failed = True

    def __init__(self, message: str, *, deployment: str) -> None:
        super().__init__(message)
        self.deployment = deployment

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        field = SlackTextField(heading="Deployment", text=self.deployment)
        message.fields.append(field)
        return message


class PauseFailedError(PauseCycleError):
    """Pausing the target pods, or waiting while paused, failed."""


class GetTargetAfterPauseFailedError(PauseCycleError):
    """The target pods could not be resolved again after unpausing."""


class StatusCheckFailedError(PauseCycleError):
    """Comparing the target status before and after the pause failed."""


class StatusUnmatchedError(PauseCycleError):
    """The target pods or deployment changed while they were paused.

    Parameters
    ----------
    message
        Summary of error.
    differences
        Human-readable list of what changed.
    """

    def __init__(self, message: str, differences: list[str]) -> None:
        super().__init__(message)
        self.differences = differences

    @override
    def to_slack(self) -> SlackMessage:
        message = super().to_slack()
        if self.differences:
            code = "\n".join(self.differences)
            message.blocks.append(SlackCodeBlock(heading="Changes", code=code))
        return message
