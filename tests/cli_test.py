"""Tests for the command-line interface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner
from safir.testing.slack import MockSlackWebhook

from scalar_admin_k8s.cli import main
from scalar_admin_k8s.models.domain.product import Product

from .support.admin import MockAdminCoordinator
from .support.constants import NAMESPACE, RELEASE
from .support.kubernetes import MockScalarKubernetesApi

CONFIG_FILE = Path(__file__).parent / "data" / "config.yaml"


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep informational log messages out of the command output."""
    monkeypatch.setenv("SCALAR_ADMIN_K8S_LOG_LEVEL", "WARNING")


@pytest.mark.usefixtures("mock_kubernetes", "scalardb_release")
def test_pause(mock_admin: MockAdminCoordinator) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main,
        ["pause", "-n", NAMESPACE, "-r", RELEASE, "-d", "10", "-z", "Japan"],
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    output = json.loads(result.output)
    assert output["namespace"] == NAMESPACE
    assert output["helm_release_name"] == RELEASE
    assert output["timezone"] == "Japan"
    start = output["pause_start_timestamp_ms"]
    assert output["pause_end_timestamp_ms"] - start >= 9
    assert len(output["pause_start_date_time"]) == 23
    assert "+" not in output["pause_start_date_time"]
    assert mock_admin.calls == ["pause", "unpause"]
    assert mock_admin.pause_waits == [None]
    assert mock_admin.tls is None


@pytest.mark.usefixtures("mock_kubernetes", "scalardb_release")
def test_pause_options(mock_admin: MockAdminCoordinator) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main,
        [
            "pause",
            "--namespace",
            NAMESPACE,
            "--release-name",
            RELEASE,
            "--pause-duration",
            "1",
            "--max-pause-wait-time",
            "500",
            "--product",
            "scalardb-cluster",
            "--admin-port",
            "7000",
            "--tls",
            "--ca-root-cert-pem",
            "-----BEGIN CERTIFICATE-----\\nabc\\n-----END CERTIFICATE-----",
            "--override-authority",
            "cluster.example.com",
        ],
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    assert json.loads(result.output)["timezone"] == "Etc/UTC"
    assert mock_admin.pause_waits == [500]
    assert [e.port for e in mock_admin.endpoints] == [7000, 7000, 7000]
    assert mock_admin.tls
    assert mock_admin.tls.ca_root_cert == (
        "-----BEGIN CERTIFICATE-----\nabc\n-----END CERTIFICATE-----"
    )
    assert mock_admin.tls.override_authority == "cluster.example.com"


@pytest.mark.usefixtures("mock_kubernetes", "scalardb_release")
def test_ca_root_cert_path(
    mock_admin: MockAdminCoordinator, tmp_path: Path
) -> None:
    cert_path = tmp_path / "ca.pem"
    cert_path.write_text("-----BEGIN CERTIFICATE-----\nxyz\n")
    runner = CliRunner()
    result = runner.invoke(
        main,
        [
            "pause",
            "-n",
            NAMESPACE,
            "-r",
            RELEASE,
            "-d",
            "1",
            "--tls",
            "--ca-root-cert-path",
            str(cert_path),
        ],
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    assert mock_admin.tls
    assert mock_admin.tls.ca_root_cert == "-----BEGIN CERTIFICATE-----\nxyz\n"
    assert mock_admin.tls.override_authority is None


@pytest.mark.usefixtures("mock_kubernetes", "scalardb_release")
def test_config_file(mock_admin: MockAdminCoordinator) -> None:
    runner = CliRunner()
    result = runner.invoke(
        main, ["pause", "-c", str(CONFIG_FILE), "-d", "1"]
    )

    assert result.exit_code == 0
    output = json.loads(result.output)
    assert output["helm_release_name"] == RELEASE
    assert output["timezone"] == "Asia/Tokyo"
    assert mock_admin.pause_waits == [1000]
    assert mock_admin.tls
    assert mock_admin.tls.override_authority == "cluster.scalardb.example.com"


@pytest.mark.usefixtures("mock_kubernetes", "mock_admin")
def test_missing_release() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["pause", "-n", NAMESPACE])
    assert result.exit_code == 2
    assert "--release-name" in result.output


def test_bad_time_zone() -> None:
    runner = CliRunner()
    result = runner.invoke(
        main, ["pause", "-r", RELEASE, "-z", "Mars/Olympus_Mons"]
    )
    assert result.exit_code == 2
    assert "Unknown time zone" in result.output


@pytest.mark.usefixtures("mock_kubernetes", "mock_admin")
def test_target_not_found(mock_slack: MockSlackWebhook) -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["pause", "-n", NAMESPACE, "-r", RELEASE])

    assert result.exit_code == 1
    assert len(mock_slack.messages) == 1
    assert "Failed to find the target pods" in json.dumps(mock_slack.messages)


@pytest.mark.usefixtures("mock_kubernetes", "scalardb_release")
def test_unpause_failed(
    mock_admin: MockAdminCoordinator, mock_slack: MockSlackWebhook
) -> None:
    mock_admin.unpause_failures = -1
    deployment = Product.SCALARDB_CLUSTER.deployment_name(RELEASE)

    runner = CliRunner()
    result = runner.invoke(
        main, ["pause", "-n", NAMESPACE, "-r", RELEASE, "-d", "1"]
    )

    assert result.exit_code == 1
    assert mock_admin.unpause_count == 3
    assert len(mock_slack.messages) == 1
    assert deployment in json.dumps(mock_slack.messages)


def test_products() -> None:
    runner = CliRunner()
    result = runner.invoke(
        main, ["products", "-r", "db"], catch_exceptions=False
    )

    assert result.exit_code == 0
    products = json.loads(result.output)
    assert [p["product"] for p in products] == [p.value for p in Product]
    assert products[1] == {
        "product": "scalardb-cluster",
        "app_label": "scalardb-cluster",
        "admin_port_name": "scalardb-cluster",
        "default_admin_port": 60053,
        "deployment_name": "db-scalardb-cluster-node",
    }


def test_help() -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["help", "pause"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "--release-name" in result.output

    result = runner.invoke(main, ["help"], catch_exceptions=False)
    assert result.exit_code == 0
    assert "products" in result.output


@pytest.mark.usefixtures("scalardb_release")
def test_default_namespace(
    mock_kubernetes: MockScalarKubernetesApi, mock_admin: MockAdminCoordinator
) -> None:
    runner = CliRunner()
    result = runner.invoke(main, ["pause", "-r", RELEASE, "-d", "1"])
    assert result.exit_code == 1
    assert mock_admin.calls == []
    assert "list_namespaced_pod" in mock_kubernetes.calls
