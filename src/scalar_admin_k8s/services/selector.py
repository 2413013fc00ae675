"""Resolve a Helm release into the pods of one Scalar product."""

from __future__ import annotations

from datetime import timedelta

from kubernetes_asyncio.client import V1Pod, V1Service
from structlog.stdlib import BoundLogger

from ..constants import (
    ADMIN_SERVICE_NAME_SUFFIX,
    KUBERNETES_REQUEST_TIMEOUT,
    LABEL_APP,
    LABEL_INSTANCE,
)
from ..exceptions import (
    AdminPortNotFoundError,
    AdminPortNotNumericError,
    AdminServiceNotFoundError,
    AmbiguousAdminServiceError,
    AmbiguousDeploymentError,
    DeploymentNotFoundError,
    MixedProductsError,
    NoPodsFoundError,
    NoProductPodsError,
    TargetNotFoundError,
    TargetSelectionError,
)
from ..models.domain.product import Product
from ..models.domain.target import (
    TargetDeployment,
    TargetPod,
    TargetSnapshot,
)
from ..storage.kubernetes.lister import (
    DeploymentStorage,
    PodStorage,
    ServiceStorage,
)
from ..timeout import Timeout

__all__ = ["TargetSelector"]


class TargetSelector:
    """Find the pods, deployment, and admin port of a Helm release.

    The Scalar Helm charts label every object they create with the release
    name and the product. A release runs exactly one product, which is
    served by one deployment and whose admin port is listed in one headless
    service.

    Selection is repeated before and after a pause, and the two results are
    compared, so nothing here is cached between calls.

    Parameters
    ----------
    namespace
        Namespace of the Helm release.
    release
        Name of the Helm release.
    pod_storage
        Storage for pods.
    deployment_storage
        Storage for deployments.
    service_storage
        Storage for services.
    logger
        Logger to use.
    product
        If given, the product the release must run. Otherwise the product
        of the first pod carrying a known product label is used.
    admin_port
        If given, use this admin port instead of looking it up in the
        headless service.
    timeout
        Total time allowed for all Kubernetes calls of one selection.

    Raises
    ------
    ValueError
        Raised if the namespace or release name is empty.
    """

    def __init__(
        self,
        *,
        namespace: str,
        release: str,
        pod_storage: PodStorage,
        deployment_storage: DeploymentStorage,
        service_storage: ServiceStorage,
        logger: BoundLogger,
        product: Product | None = None,
        admin_port: int | None = None,
        timeout: timedelta = KUBERNETES_REQUEST_TIMEOUT,
    ) -> None:
        if not namespace:
            raise ValueError("namespace is required")
        if not release:
            raise ValueError("helm release name is required")
        self._namespace = namespace
        self._release = release
        self._pod_storage = pod_storage
        self._deployment_storage = deployment_storage
        self._service_storage = service_storage
        self._product = product
        self._admin_port = admin_port
        self._timeout = timeout
        self._logger = logger.bind(namespace=namespace, release=release)

    async def select(self) -> TargetSnapshot:
        """Resolve the Helm release into a target.

        Returns
        -------
        TargetSnapshot
            Pods, deployment, and admin port of the release as of now.

        Raises
        ------
        TargetNotFoundError
            Raised if the release cannot be resolved into exactly one
            target. The underlying reason is the exception cause.
        """
        timeout = Timeout("Finding target pods", self._timeout)
        try:
            return await self._select(timeout)
        except Exception as e:
            self._logger.debug("Target selection failed", error=str(e))
            msg = f"Can not find any target pods: {e!s}"
            raise TargetNotFoundError(
                msg, namespace=self._namespace, release=self._release
            ) from e

    async def _select(self, timeout: Timeout) -> TargetSnapshot:
        pods = await self._pod_storage.list(
            self._namespace, timeout, labels={LABEL_INSTANCE: self._release}
        )
        if not pods:
            msg = f"Helm release {self._release} didn't create any pod"
            raise self._error(NoPodsFoundError, msg)
        product, selected = self._select_product_pods(pods)

        labels = {LABEL_INSTANCE: self._release, LABEL_APP: product.app_label}
        deployments = await self._deployment_storage.list(
            self._namespace, timeout, labels=labels
        )
        if not deployments:
            msg = f"Helm release {self._release} didn't create any deployment"
            raise self._error(DeploymentNotFoundError, msg)
        if len(deployments) > 1:
            msg = (
                f"Helm release {self._release} created more than one"
                " deployment. Please make sure you deploy Scalar products"
                " with Scalar Helm Charts."
            )
            raise self._error(AmbiguousDeploymentError, msg)

        if self._admin_port is not None:
            admin_port = self._admin_port
        else:
            services = await self._service_storage.list(
                self._namespace, timeout, labels=labels
            )
            service = self._select_admin_service(services)
            admin_port = self._find_admin_port(service, product)

        target = TargetSnapshot(
            product=product,
            pods=tuple(TargetPod.from_pod(p) for p in selected),
            deployment=TargetDeployment.from_deployment(deployments[0]),
            admin_port=admin_port,
        )
        self._logger.debug(
            "Found target pods",
            product=product.value,
            pods=[p.name for p in target.pods],
            deployment=target.deployment.name,
            admin_port=admin_port,
        )
        return target

    def _select_product_pods(
        self, pods: list[V1Pod]
    ) -> tuple[Product, list[V1Pod]]:
        """Keep the pods running a Scalar product.

        Pods without a known product label, such as sidecars or tooling
        deployed by the same release, are skipped.
        """
        product = self._product
        selected = []
        for pod in pods:
            labels = pod.metadata.labels or {}
            if LABEL_APP not in labels:
                continue
            pod_product = Product.from_app_label(labels[LABEL_APP])
            if pod_product is None:
                continue
            if product is None:
                product = pod_product
            if pod_product != product and product == self._product:
                msg = (
                    f"Helm release {self._release} runs {pod_product.value},"
                    f" not the configured product {product.value}"
                )
                raise self._error(MixedProductsError, msg)
            if pod_product != product:
                msg = (
                    "The pods created by the Helm release run different"
                    f" Scalar products: {product.value} and"
                    f" {pod_product.value}. Please make sure you deploy"
                    " Scalar products with Scalar Helm Charts."
                )
                raise self._error(MixedProductsError, msg)
            selected.append(pod)
        if product is None or not selected:
            msg = (
                "The pods created by the Helm release don't run any Scalar"
                " product"
            )
            raise self._error(NoProductPodsError, msg)
        return product, selected

    def _select_admin_service(self, services: list[V1Service]) -> V1Service:
        admin_services = [
            s
            for s in services
            if s.metadata.name.endswith(ADMIN_SERVICE_NAME_SUFFIX)
        ]
        if not admin_services:
            msg = (
                f"Helm release {self._release} didn't create any service that"
                " runs the Scalar Admin interface"
            )
            raise self._error(AdminServiceNotFoundError, msg)
        if len(admin_services) > 1:
            msg = (
                f"Helm release {self._release} created more than one service"
                " that runs the Scalar Admin interface"
            )
            raise self._error(AmbiguousAdminServiceError, msg)
        return admin_services[0]

    def _find_admin_port(self, service: V1Service, product: Product) -> int:
        name = service.metadata.name
        ports = service.spec.ports if service.spec else None
        for port in ports or []:
            if port.name != product.admin_port_name:
                continue
            # Either an int or a str holding the name of a container port.
            if not isinstance(port.target_port, int):
                msg = (
                    f"The service {name} uses the port definition"
                    f" {port.target_port} as its target port. Please deploy"
                    " Scalar products with Scalar Helm Charts."
                )
                raise self._error(AdminPortNotNumericError, msg)
            return port.target_port
        port_name = product.admin_port_name
        msg = f"Can not find the port {port_name} in the service {name}"
        raise self._error(AdminPortNotFoundError, msg)

    def _error(
        self, error: type[TargetSelectionError], message: str
    ) -> TargetSelectionError:
        return error(message, namespace=self._namespace, release=self._release)
