"""Tests for the admin interface client."""

from __future__ import annotations

from datetime import timedelta

import grpc
import pytest
from structlog.stdlib import BoundLogger

from scalar_admin_k8s.exceptions import AdminRequestError
from scalar_admin_k8s.models.domain.target import AdminEndpoint
from scalar_admin_k8s.storage.admin import AdminClient, PauseRequest

from ..support.grpc import start_admin_server


def test_pause_request_wire_format() -> None:
    request = PauseRequest(wait_outstanding=True, max_pause_wait_time=100)
    assert request.SerializeToString() == b"\x08\x01\x10\x64"

    # Unset maximum wait time is left out so that the product default applies.
    request = PauseRequest(wait_outstanding=True)
    assert request.SerializeToString() == b"\x08\x01"


@pytest.mark.asyncio
async def test_pause_unpause(logger: BoundLogger) -> None:
    async with (
        start_admin_server() as first,
        start_admin_server() as second,
    ):
        endpoints = [
            AdminEndpoint(ip="127.0.0.1", port=first.port),
            AdminEndpoint(ip="127.0.0.1", port=second.port),
        ]
        client = AdminClient(
            endpoints, timeout=timedelta(seconds=10), logger=logger
        )

        await client.pause(drain=True, max_pause_wait_time=2000)
        await client.pause(drain=True, max_pause_wait_time=None)
        await client.unpause()

        for server in (first, second):
            requests = server.pause_requests
            assert len(requests) == 2
            assert requests[0].wait_outstanding
            assert requests[0].max_pause_wait_time == 2000
            assert requests[1].wait_outstanding
            assert requests[1].max_pause_wait_time == 0
            assert server.unpause_count == 1


@pytest.mark.asyncio
async def test_failure_names_endpoints(logger: BoundLogger) -> None:
    async with (
        start_admin_server() as good,
        start_admin_server() as bad,
    ):
        bad.fail_with = grpc.StatusCode.FAILED_PRECONDITION
        bad_endpoint = AdminEndpoint(ip="127.0.0.1", port=bad.port)
        endpoints = [
            AdminEndpoint(ip="127.0.0.1", port=good.port),
            bad_endpoint,
        ]
        client = AdminClient(
            endpoints, timeout=timedelta(seconds=10), logger=logger
        )

        with pytest.raises(AdminRequestError) as excinfo:
            await client.unpause()
        assert excinfo.value.failures == {
            str(bad_endpoint): "FAILED_PRECONDITION: unpause refused"
        }
        assert str(bad_endpoint) in str(excinfo.value)

        # Every endpoint is still contacted.
        assert good.unpause_count == 1
        assert bad.unpause_count == 1


@pytest.mark.asyncio
async def test_unreachable(logger: BoundLogger) -> None:
    async with start_admin_server() as server:
        port = server.port
    endpoint = AdminEndpoint(ip="127.0.0.1", port=port)
    client = AdminClient(
        [endpoint], timeout=timedelta(seconds=2), logger=logger
    )

    with pytest.raises(AdminRequestError) as excinfo:
        await client.pause(drain=True, max_pause_wait_time=None)
    assert list(excinfo.value.failures) == [str(endpoint)]
