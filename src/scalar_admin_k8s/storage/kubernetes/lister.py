"""Generic Kubernetes object storage supporting list.

Provides a generic read-only Kubernetes object storage class and its
instantiations for the object types the target selector looks up. All of them
only need to be listed by label.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import client
from kubernetes_asyncio.client import (
    ApiClient,
    ApiException,
    V1Deployment,
    V1Pod,
    V1Service,
)
from structlog.stdlib import BoundLogger

from ...exceptions import KubernetesError
from ...models.domain.kubernetes import KubernetesModel, build_label_selector
from ...timeout import Timeout

__all__ = [
    "DeploymentStorage",
    "KubernetesObjectLister",
    "PodStorage",
    "ServiceStorage",
]


class KubernetesObjectLister[T: KubernetesModel]:
    """Generic Kubernetes object storage supporting list.

    This class provides a wrapper around any namespaced Kubernetes object type
    that implements list with logging and exception conversion.

    Parameters
    ----------
    list_method
        Method to list all of this type of object in a namespace.
    kind
        Kubernetes kind of object being acted on.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        list_method: Callable[..., Awaitable[Any]],
        kind: str,
        logger: BoundLogger,
    ) -> None:
        self._list = list_method
        self._kind = kind
        self._logger = logger

    async def list(
        self,
        namespace: str,
        timeout: Timeout,
        *,
        labels: dict[str, str] | None = None,
    ) -> list[T]:
        """List objects of the appropriate kind in the namespace.

        Parameters
        ----------
        namespace
            Namespace to list.
        timeout
            Timeout on operation.
        labels
            If given, only return objects carrying all of these label values.

        Returns
        -------
        list
            List of objects found.

        Raises
        ------
        KubernetesError
            Raised for exceptions from the Kubernetes API server.
        OperationTimeoutError
            Raised if the timeout expired.
        """
        extra_args: dict[str, str | float] = {
            "_request_timeout": timeout.left()
        }
        if labels:
            extra_args["label_selector"] = build_label_selector(labels)
        self._logger.debug(
            f"Listing {self._kind} objects",
            namespace=namespace,
            label_selector=extra_args.get("label_selector"),
        )
        try:
            async with timeout.enforce():
                objs = await self._list(namespace, **extra_args)
        except ApiException as e:
            raise KubernetesError.from_exception(
                "Error listing objects",
                e,
                kind=self._kind,
                namespace=namespace,
            ) from e
        return objs.items


class DeploymentStorage(KubernetesObjectLister[V1Deployment]):
    """Storage layer for ``Deployment`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.AppsV1Api(api_client)
        super().__init__(
            list_method=api.list_namespaced_deployment,
            kind="Deployment",
            logger=logger,
        )


class PodStorage(KubernetesObjectLister[V1Pod]):
    """Storage layer for ``Pod`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            list_method=api.list_namespaced_pod,
            kind="Pod",
            logger=logger,
        )


class ServiceStorage(KubernetesObjectLister[V1Service]):
    """Storage layer for ``Service`` objects.

    Parameters
    ----------
    api_client
        Kubernetes API client.
    logger
        Logger to use.
    """

    def __init__(self, api_client: ApiClient, logger: BoundLogger) -> None:
        api = client.CoreV1Api(api_client)
        super().__init__(
            list_method=api.list_namespaced_service,
            kind="Service",
            logger=logger,
        )
