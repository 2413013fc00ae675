"""Component factory for the pause coordinator."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Self

from kubernetes_asyncio.client.api_client import ApiClient
from kubernetes_asyncio.config import load_kube_config
from safir.kubernetes import initialize_kubernetes
from structlog.stdlib import BoundLogger, get_logger

from .config import Config
from .constants import ROOT_LOGGER
from .models.domain.target import TargetSnapshot
from .services.pauser import Pauser
from .services.selector import TargetSelector
from .storage.admin import AdminClient, AdminTlsOptions
from .storage.kubernetes.lister import (
    DeploymentStorage,
    PodStorage,
    ServiceStorage,
)

__all__ = ["Factory"]


class Factory:
    """Build pause coordinator components.

    Parameters
    ----------
    config
        Pause coordinator configuration.
    kubernetes_client
        Kubernetes API client shared by all storage objects.
    logger
        Logger to use for messages.
    """

    @classmethod
    @asynccontextmanager
    async def create(cls, config: Config) -> AsyncIterator[Self]:
        """Async context manager for pause coordinator components.

        Loads the Kubernetes client configuration, from the given kubeconfig
        file or context if either is set and otherwise from the in-cluster
        configuration if available, and closes the Kubernetes client on exit.

        Parameters
        ----------
        config
            Pause coordinator configuration.

        Yields
        ------
        Factory
            Newly-created factory. Must be used as a context manager.
        """
        if config.kubeconfig or config.kube_context:
            path = str(config.kubeconfig) if config.kubeconfig else None
            await load_kube_config(
                config_file=path, context=config.kube_context
            )
        else:
            await initialize_kubernetes()
        logger = get_logger(ROOT_LOGGER)
        kubernetes_client = ApiClient()
        try:
            yield cls(config, kubernetes_client, logger)
        finally:
            await kubernetes_client.close()

    def __init__(
        self,
        config: Config,
        kubernetes_client: ApiClient,
        logger: BoundLogger,
    ) -> None:
        self._config = config
        self._kubernetes_client = kubernetes_client
        self._logger = logger

    def create_admin_client(self, target: TargetSnapshot) -> AdminClient:
        """Create a client for the admin interface of the target pods.

        Parameters
        ----------
        target
            Target whose pods should be contacted.

        Returns
        -------
        AdminClient
            Newly-created admin client.

        Raises
        ------
        PodNotReadyError
            Raised if a pod of the target has no IP address.
        """
        tls = None
        if self._config.tls:
            tls = AdminTlsOptions(
                ca_root_cert=self._config.ca_root_cert,
                override_authority=self._config.override_authority,
            )
        return AdminClient(
            target.get_endpoints(),
            timeout=self._config.admin_timeout,
            logger=self._logger,
            tls=tls,
        )

    def create_pauser(self) -> Pauser:
        """Create a pauser for the configured Helm release.

        Returns
        -------
        Pauser
            Newly-created pauser.

        Raises
        ------
        ValueError
            Raised if the namespace or release name is empty.
        """
        return Pauser(
            self.create_target_selector(),
            self.create_admin_client,
            self._logger,
            max_unpause_retry_count=self._config.max_unpause_retry_count,
        )

    def create_target_selector(self) -> TargetSelector:
        """Create a target selector for the configured Helm release.

        Returns
        -------
        TargetSelector
            Newly-created target selector.
        """
        logger = self._logger
        return TargetSelector(
            namespace=self._config.namespace,
            release=self._config.release_name or "",
            pod_storage=PodStorage(self._kubernetes_client, logger),
            deployment_storage=DeploymentStorage(
                self._kubernetes_client, logger
            ),
            service_storage=ServiceStorage(self._kubernetes_client, logger),
            logger=logger,
            product=self._config.product,
            admin_port=self._config.admin_port,
            timeout=self._config.kubernetes_timeout,
        )
