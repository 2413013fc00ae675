"""Models for the pods, deployment, and admin port of a paused product."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Self, override

from kubernetes_asyncio.client import V1Deployment, V1Pod

from ...exceptions import PodNotReadyError
from .product import Product

__all__ = [
    "AdminEndpoint",
    "PausedDuration",
    "TargetDeployment",
    "TargetPod",
    "TargetSnapshot",
    "TargetStatus",
]


@dataclass(frozen=True, slots=True)
class AdminEndpoint:
    """Network address of the admin interface of one pod."""

    ip: str
    """IP address of the pod."""

    port: int
    """Admin port."""

    @override
    def __str__(self) -> str:
        if ":" in self.ip:
            return f"[{self.ip}]:{self.port}"
        return f"{self.ip}:{self.port}"


@dataclass(frozen=True, slots=True)
class TargetPod:
    """Identity of one pod of the target fleet."""

    name: str
    """Name of the pod, unique within its namespace."""

    ip: str | None
    """IP address of the pod, if one has been assigned."""

    resource_version: str
    """Resource version of the pod object."""

    restart_count: int
    """Sum of the restart counts of all containers of the pod."""

    @classmethod
    def from_pod(cls, pod: V1Pod) -> Self:
        """Capture the identity of a Kubernetes pod.

        Parameters
        ----------
        pod
            Pod as returned by the Kubernetes API.

        Returns
        -------
        TargetPod
            Corresponding identity.
        """
        ip = None
        restart_count = 0
        if pod.status:
            ip = pod.status.pod_ip
            for container in pod.status.container_statuses or []:
                restart_count += container.restart_count or 0
        return cls(
            name=pod.metadata.name,
            ip=ip,
            resource_version=pod.metadata.resource_version,
            restart_count=restart_count,
        )


@dataclass(frozen=True, slots=True)
class TargetDeployment:
    """Identity of the deployment owning the target pods."""

    name: str
    """Name of the deployment."""

    resource_version: str
    """Resource version of the deployment object."""

    @classmethod
    def from_deployment(cls, deployment: V1Deployment) -> Self:
        return cls(
            name=deployment.metadata.name,
            resource_version=deployment.metadata.resource_version,
        )


@dataclass(frozen=True)
class TargetStatus:
    """Fingerprint of the target fleet at one point in time.

    Two statuses compare equal only if every pod has the same restart count
    and resource version and the deployment has the same resource version.
    A status taken before a pause that is not equal to one taken after
    means the pods were restarted, rescheduled, or updated while paused.
    """

    pod_restart_counts: dict[str, int]
    """Mapping of pod name to the restart count of its containers."""

    pod_resource_versions: dict[str, str]
    """Mapping of pod name to the resource version of the pod."""

    deployment_resource_version: str
    """Resource version of the deployment."""

    def diff(self, other: TargetStatus) -> list[str]:
        """Describe how another status differs from this one.

        Parameters
        ----------
        other
            Later status of the same target.

        Returns
        -------
        list of str
            One entry per difference, empty if the statuses are equal.
        """
        changes = []
        before = self.pod_resource_versions
        after = other.pod_resource_versions
        for name in sorted(before.keys() | after.keys()):
            if name not in after:
                changes.append(f"Pod {name} disappeared")
            elif name not in before:
                changes.append(f"Pod {name} appeared")
            else:
                old_count = self.pod_restart_counts.get(name)
                new_count = other.pod_restart_counts.get(name)
                if old_count != new_count:
                    changes.append(
                        f"Pod {name} restart count changed from {old_count}"
                        f" to {new_count}"
                    )
                if before[name] != after[name]:
                    changes.append(
                        f"Pod {name} resource version changed from"
                        f" {before[name]} to {after[name]}"
                    )
        old_version = self.deployment_resource_version
        new_version = other.deployment_resource_version
        if old_version != new_version:
            changes.append(
                f"Deployment resource version changed from {old_version}"
                f" to {new_version}"
            )
        return changes


@dataclass(frozen=True)
class TargetSnapshot:
    """The pods, deployment, and admin port of one Helm release.

    Created by the target selector each time it resolves a release and never
    modified afterwards.
    """

    product: Product
    """Scalar product all of the pods run."""

    pods: tuple[TargetPod, ...]
    """Pods running the product."""

    deployment: TargetDeployment
    """Deployment owning the pods."""

    admin_port: int
    """Port of the admin interface on every pod."""

    def get_status(self) -> TargetStatus:
        """Project the snapshot onto its status fingerprint.

        Returns
        -------
        TargetStatus
            Status of the target when the snapshot was taken.
        """
        return TargetStatus(
            pod_restart_counts={p.name: p.restart_count for p in self.pods},
            pod_resource_versions={
                p.name: p.resource_version for p in self.pods
            },
            deployment_resource_version=self.deployment.resource_version,
        )

    def get_endpoints(self) -> list[AdminEndpoint]:
        """Addresses of the admin interface of every pod.

        Returns
        -------
        list of AdminEndpoint
            One endpoint per pod.

        Raises
        ------
        PodNotReadyError
            Raised if a pod has not been assigned an IP address.
        """
        endpoints = []
        for pod in self.pods:
            if not pod.ip:
                raise PodNotReadyError(pod.name)
            endpoints.append(AdminEndpoint(ip=pod.ip, port=self.admin_port))
        return endpoints


@dataclass(frozen=True, slots=True)
class PausedDuration:
    """Period during which the target pods were known to be paused."""

    start_time: datetime
    """When every pod had acknowledged the pause."""

    end_time: datetime
    """When the wait ended, just before unpausing."""
