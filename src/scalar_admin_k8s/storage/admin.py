"""Client for the Scalar Admin interface of product pods.

Every Scalar product exposes a small gRPC service, ``rpc.Admin``, through
which it can be told to stop accepting requests (optionally after draining
outstanding ones) and to resume. This module talks to that service on every
pod of a target at once.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol

import grpc
from google.protobuf import (
    descriptor_pb2,
    descriptor_pool,
    empty_pb2,
    message_factory,
)
from google.protobuf.message import Message
from structlog.stdlib import BoundLogger

from ..exceptions import AdminRequestError
from ..models.domain.target import AdminEndpoint

__all__ = [
    "AdminClient",
    "AdminCoordinator",
    "AdminTlsOptions",
    "PauseRequest",
]

_PAUSE_METHOD = "/rpc.Admin/Pause"
_UNPAUSE_METHOD = "/rpc.Admin/Unpause"


def _build_pause_request_type() -> type[Message]:
    """Build the ``rpc.PauseRequest`` message class.

    The admin service only needs this one message besides the well-known
    ``Empty``, so it is described here directly instead of compiling the
    ``.proto`` file.
    """
    field_type = descriptor_pb2.FieldDescriptorProto
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="scalar_admin_k8s/admin.proto", package="rpc", syntax="proto3"
    )
    message = file_proto.message_type.add(name="PauseRequest")
    message.field.add(
        name="wait_outstanding",
        number=1,
        type=field_type.TYPE_BOOL,
        label=field_type.LABEL_OPTIONAL,
    )
    message.field.add(
        name="max_pause_wait_time",
        number=2,
        type=field_type.TYPE_INT64,
        label=field_type.LABEL_OPTIONAL,
    )
    pool = descriptor_pool.DescriptorPool()
    pool.AddSerializedFile(file_proto.SerializeToString())
    descriptor = pool.FindMessageTypeByName("rpc.PauseRequest")
    return message_factory.GetMessageClass(descriptor)


PauseRequest = _build_pause_request_type()
"""Protobuf message class for the ``Pause`` RPC request."""


class AdminCoordinator(Protocol):
    """Sends admin requests to every pod of a target."""

    async def pause(
        self, *, drain: bool, max_pause_wait_time: int | None
    ) -> None:
        """Pause every pod.

        Parameters
        ----------
        drain
            Whether to wait for outstanding requests to finish first.
        max_pause_wait_time
            Maximum time in milliseconds to wait for outstanding requests,
            or `None` to use the product default.
        """

    async def unpause(self) -> None:
        """Unpause every pod."""


@dataclass(frozen=True, slots=True)
class AdminTlsOptions:
    """TLS settings for connections to the admin interface."""

    ca_root_cert: str | None = None
    """PEM root certificate to verify pods with, or system roots if `None`."""

    override_authority: str | None = None
    """Host name expected in the certificate of the pods."""


class AdminClient:
    """Admin client for a fixed set of pods.

    Parameters
    ----------
    endpoints
        Admin endpoints of every pod of the target.
    timeout
        Deadline of a single request to one pod. The drain wait of a pause
        request is added to it.
    logger
        Logger to use.
    tls
        TLS settings, or `None` to use plaintext connections.
    """

    def __init__(
        self,
        endpoints: list[AdminEndpoint],
        *,
        timeout: timedelta,
        logger: BoundLogger,
        tls: AdminTlsOptions | None = None,
    ) -> None:
        self._endpoints = endpoints
        self._timeout = timeout
        self._logger = logger
        self._tls = tls

    async def pause(
        self, *, drain: bool, max_pause_wait_time: int | None
    ) -> None:
        """Pause every pod.

        Parameters
        ----------
        drain
            Whether to wait for outstanding requests to finish first.
        max_pause_wait_time
            Maximum time in milliseconds to wait for outstanding requests,
            or `None` to use the product default.

        Raises
        ------
        AdminRequestError
            Raised if the request failed on any pod.
        """
        request = PauseRequest(wait_outstanding=drain)
        timeout = self._timeout.total_seconds()
        if max_pause_wait_time is not None:
            request.max_pause_wait_time = max_pause_wait_time
            timeout += max_pause_wait_time / 1000
        await self._call_all("Pause", _PAUSE_METHOD, request, timeout)

    async def unpause(self) -> None:
        """Unpause every pod.

        Raises
        ------
        AdminRequestError
            Raised if the request failed on any pod.
        """
        request = empty_pb2.Empty()
        timeout = self._timeout.total_seconds()
        await self._call_all("Unpause", _UNPAUSE_METHOD, request, timeout)

    async def _call_all(
        self, name: str, method: str, request: Message, timeout: float
    ) -> None:
        self._logger.debug(
            f"Sending {name} request",
            endpoints=[str(e) for e in self._endpoints],
        )
        results = await asyncio.gather(
            *(
                self._call(e, method, request, timeout)
                for e in self._endpoints
            ),
            return_exceptions=True,
        )
        failures = {}
        for endpoint, result in zip(self._endpoints, results, strict=True):
            if isinstance(result, grpc.aio.AioRpcError):
                failures[str(endpoint)] = (
                    f"{result.code().name}: {result.details()}"
                )
            elif isinstance(result, Exception):
                failures[str(endpoint)] = f"{type(result).__name__}: {result}"
        if failures:
            raise AdminRequestError(f"{name} request failed", failures)

    async def _call(
        self,
        endpoint: AdminEndpoint,
        method: str,
        request: Message,
        timeout: float,
    ) -> None:
        async with self._open_channel(endpoint) as channel:
            call = channel.unary_unary(
                method,
                request_serializer=_serialize,
                response_deserializer=empty_pb2.Empty.FromString,
            )
            await call(request, timeout=timeout)

    @asynccontextmanager
    async def _open_channel(
        self, endpoint: AdminEndpoint
    ) -> AsyncIterator[grpc.aio.Channel]:
        target = str(endpoint)
        if self._tls:
            root = self._tls.ca_root_cert
            credentials = grpc.ssl_channel_credentials(
                root_certificates=root.encode() if root else None
            )
            options = []
            if self._tls.override_authority:
                authority = self._tls.override_authority
                options.append(("grpc.ssl_target_name_override", authority))
            channel = grpc.aio.secure_channel(target, credentials, options)
        else:
            channel = grpc.aio.insecure_channel(target)
        async with channel:
            yield channel


def _serialize(message: Message) -> bytes:
    return message.SerializeToString()
