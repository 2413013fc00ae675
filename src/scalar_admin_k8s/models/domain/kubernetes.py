"""Data types for interacting with Kubernetes."""

from __future__ import annotations

from typing import Any, Protocol

from kubernetes_asyncio.client import V1ObjectMeta

__all__ = ["KubernetesModel", "build_label_selector"]


class KubernetesModel(Protocol):
    """Protocol for Kubernetes object models.

    kubernetes-asyncio_ doesn't currently expose type information, so this
    tells mypy that all the object models we deal with will have a metadata
    attribute.
    """

    metadata: V1ObjectMeta

    def to_dict(self, *, serialize: bool = False) -> dict[str, Any]: ...


def build_label_selector(labels: dict[str, str]) -> str:
    """Convert required label values to a label selector expression.

    Parameters
    ----------
    labels
        Mapping of label name to required value.

    Returns
    -------
    str
        Equality-based selector such as ``app=foo,tier=bar``.
    """
    return ",".join(f"{k}={v}" for k, v in labels.items())
