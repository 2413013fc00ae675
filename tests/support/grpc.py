"""Mock Scalar Admin gRPC server."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import grpc
from google.protobuf import empty_pb2
from google.protobuf.message import Message

from scalar_admin_k8s.storage.admin import PauseRequest

__all__ = ["MockAdminServer", "start_admin_server"]


class MockAdminServer:
    """Implementation of the ``rpc.Admin`` service that records requests.

    Attributes
    ----------
    port
        Port the server listens on, set once it has been started.
    pause_requests
        Pause requests received, in order.
    unpause_count
        Number of unpause requests received.
    fail_with
        If set, every request is aborted with this status code.
    """

    def __init__(self) -> None:
        self.port = 0
        self.pause_requests: list[Message] = []
        self.unpause_count = 0
        self.fail_with: grpc.StatusCode | None = None

    async def pause(
        self, request: Message, context: grpc.aio.ServicerContext
    ) -> empty_pb2.Empty:
        self.pause_requests.append(request)
        if self.fail_with:
            await context.abort(self.fail_with, "pause refused")
        return empty_pb2.Empty()

    async def unpause(
        self, request: empty_pb2.Empty, context: grpc.aio.ServicerContext
    ) -> empty_pb2.Empty:
        self.unpause_count += 1
        if self.fail_with:
            await context.abort(self.fail_with, "unpause refused")
        return empty_pb2.Empty()


@asynccontextmanager
async def start_admin_server() -> AsyncIterator[MockAdminServer]:
    """Run a mock admin server on a random local port.

    Yields
    ------
    MockAdminServer
        Running mock server.
    """
    mock = MockAdminServer()
    handlers = {
        "Pause": grpc.unary_unary_rpc_method_handler(
            mock.pause,
            request_deserializer=PauseRequest.FromString,
            response_serializer=empty_pb2.Empty.SerializeToString,
        ),
        "Unpause": grpc.unary_unary_rpc_method_handler(
            mock.unpause,
            request_deserializer=empty_pb2.Empty.FromString,
            response_serializer=empty_pb2.Empty.SerializeToString,
        ),
    }
    server = grpc.aio.server()
    server.add_generic_rpc_handlers(
        (grpc.method_handlers_generic_handler("rpc.Admin", handlers),)
    )
    mock.port = server.add_insecure_port("127.0.0.1:0")
    await server.start()
    try:
        yield mock
    finally:
        await server.stop(None)
