"""Global constants."""

from datetime import timedelta

__all__ = [
    "ADMIN_REQUEST_TIMEOUT",
    "ADMIN_SERVICE_NAME_SUFFIX",
    "ALERT_HOOK_ENV_VAR",
    "CONFIG_FILE_ENV_VAR",
    "DEFAULT_NAMESPACE",
    "DEFAULT_PAUSE_DURATION",
    "DEFAULT_TIME_ZONE",
    "ENV_PREFIX",
    "KUBERNETES_REQUEST_TIMEOUT",
    "LABEL_APP",
    "LABEL_INSTANCE",
    "MAX_UNPAUSE_RETRY_COUNT",
    "ROOT_LOGGER",
]

ADMIN_REQUEST_TIMEOUT = timedelta(minutes=1)
"""Default deadline for a single admin RPC to one pod.

The drain wait passed to a pause request is added on top of this.
"""

ADMIN_SERVICE_NAME_SUFFIX = "-headless"
"""Suffix of the name of the service exposing the admin interface.

The Scalar Helm charts create several services per release. Only the
headless one lists the admin port.
"""

DEFAULT_NAMESPACE = "default"
"""Namespace used if none is given."""

DEFAULT_PAUSE_DURATION = 5000
"""Default pause duration in milliseconds."""

DEFAULT_TIME_ZONE = "Etc/UTC"
"""Default time zone used to report the paused period."""

ENV_PREFIX = "SCALAR_ADMIN_K8S_"
"""Prefix for environment variables overriding configuration."""

ALERT_HOOK_ENV_VAR = f"{ENV_PREFIX}ALERT_HOOK"
"""Environment variable holding the Slack webhook for alerts."""

CONFIG_FILE_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
"""Environment variable holding the path to the configuration file."""

KUBERNETES_REQUEST_TIMEOUT = timedelta(seconds=30)
"""Default timeout for resolving the target pods through the Kubernetes API."""

LABEL_APP = "app.kubernetes.io/app"
"""Label carrying the Scalar product that a pod runs."""

LABEL_INSTANCE = "app.kubernetes.io/instance"
"""Label carrying the Helm release that created an object."""

MAX_UNPAUSE_RETRY_COUNT = 3
"""Number of unpause attempts before giving up."""

ROOT_LOGGER = "scalar_admin_k8s"
"""Name of the logger used by the package."""
