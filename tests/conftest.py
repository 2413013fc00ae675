"""Test fixtures for the pause coordinator tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
import respx
from safir.testing.slack import MockSlackWebhook, mock_slack_webhook
from structlog.stdlib import BoundLogger, get_logger

from scalar_admin_k8s.constants import ALERT_HOOK_ENV_VAR, ROOT_LOGGER
from scalar_admin_k8s.models.domain.product import Product
from scalar_admin_k8s.models.domain.target import TargetSnapshot
from scalar_admin_k8s.services.pauser import Pauser
from scalar_admin_k8s.services.selector import TargetSelector

from .support.admin import MockAdminCoordinator, patch_admin
from .support.constants import NAMESPACE, RELEASE
from .support.kubernetes import (
    MockScalarKubernetesApi,
    install_release,
    patch_kubernetes,
)
from .support.selector import build_selector


@pytest.fixture
def logger() -> BoundLogger:
    return get_logger(ROOT_LOGGER)


@pytest.fixture
def mock_kubernetes() -> Iterator[MockScalarKubernetesApi]:
    yield from patch_kubernetes()


@pytest.fixture
def mock_admin(
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[MockAdminCoordinator]:
    yield from patch_admin(monkeypatch)


@pytest.fixture
def scalardb_release(mock_kubernetes: MockScalarKubernetesApi) -> None:
    """Install a three-pod ScalarDB Cluster release."""
    install_release(
        mock_kubernetes, NAMESPACE, RELEASE, Product.SCALARDB_CLUSTER
    )


@pytest.fixture
def selector(
    mock_kubernetes: MockScalarKubernetesApi, logger: BoundLogger
) -> TargetSelector:
    return build_selector(logger)


@pytest.fixture
def coordinator() -> MockAdminCoordinator:
    return MockAdminCoordinator()


@pytest.fixture
def pauser(
    selector: TargetSelector,
    coordinator: MockAdminCoordinator,
    logger: BoundLogger,
) -> Pauser:
    """Pauser using the mock Kubernetes API and a mock coordinator."""

    def create_coordinator(target: TargetSnapshot) -> MockAdminCoordinator:
        coordinator.endpoints = target.get_endpoints()
        return coordinator

    return Pauser(selector, create_coordinator, logger)


@pytest.fixture
def mock_slack(
    monkeypatch: pytest.MonkeyPatch, respx_mock: respx.Router
) -> MockSlackWebhook:
    """Mock Slack webhook configured as the alert hook."""
    hook_url = "https://slack.example.com/webhook"
    monkeypatch.setenv(ALERT_HOOK_ENV_VAR, hook_url)
    return mock_slack_webhook(hook_url, respx_mock)
