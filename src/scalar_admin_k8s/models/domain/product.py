"""Catalog of Scalar products that can be paused."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Self

__all__ = ["Product", "ProductInfo"]


@dataclass(frozen=True, slots=True)
class ProductInfo:
    """How a Scalar product shows up in Kubernetes."""

    app_label: str
    """Value of the ``app.kubernetes.io/app`` label on its pods."""

    admin_port_name: str
    """Name of the admin port in the headless service."""

    default_admin_port: int
    """Port the admin interface listens on unless reconfigured."""

    deployment_suffix: str
    """Suffix appended to the Helm release name to form the deployment name."""


class Product(StrEnum):
    """A Scalar product deployed with the Scalar Helm charts."""

    SCALARDB_SERVER = "scalardb"
    SCALARDB_CLUSTER = "scalardb-cluster"
    SCALARDL_LEDGER = "scalardl-ledger"
    SCALARDL_AUDITOR = "scalardl-auditor"

    @classmethod
    def from_app_label(cls, value: str) -> Self | None:
        """Find the product carrying an app label value.

        Parameters
        ----------
        value
            Value of the ``app.kubernetes.io/app`` label.

        Returns
        -------
        Product or None
            Matching product, or `None` if the label value does not belong
            to a Scalar product.
        """
        for product in cls:
            if product.info.app_label == value:
                return product
        return None

    @property
    def info(self) -> ProductInfo:
        """Kubernetes conventions for this product."""
        return _CATALOG[self]

    @property
    def app_label(self) -> str:
        return self.info.app_label

    @property
    def admin_port_name(self) -> str:
        return self.info.admin_port_name

    @property
    def default_admin_port(self) -> int:
        return self.info.default_admin_port

    def deployment_name(self, release: str) -> str:
        """Name of the deployment the Helm chart creates for a release."""
        return f"{release}-{self.info.deployment_suffix}"


_CATALOG = {
    Product.SCALARDB_SERVER: ProductInfo(
        app_label="scalardb",
        admin_port_name="scalardb",
        default_admin_port=60051,
        deployment_suffix="scalardb",
    ),
    Product.SCALARDB_CLUSTER: ProductInfo(
        app_label="scalardb-cluster",
        admin_port_name="scalardb-cluster",
        default_admin_port=60053,
        deployment_suffix="scalardb-cluster-node",
    ),
    Product.SCALARDL_LEDGER: ProductInfo(
        app_label="ledger",
        admin_port_name="scalardl-admin",
        default_admin_port=50053,
        deployment_suffix="ledger",
    ),
    Product.SCALARDL_AUDITOR: ProductInfo(
        app_label="auditor",
        admin_port_name="scalardl-auditor-admin",
        default_admin_port=40053,
        deployment_suffix="auditor",
    ),
}
