"""
Internal gRPC transport for the Concourse SDK.

This module provides the low-level communication layer: the session
handshake (login/logout), transaction control (stage/commit/abort) and the
RemoteOperationInvoker used by DispatchExecutor. It is internal to the SDK
and should not be used directly by users.

Users should use Client instead, which provides a clean Python API.

Every remote variant is a unary method of the `concourse.ConcourseService`
service named after its descriptor (e.g. `/concourse.ConcourseService/GetKeyRecord`).
Requests and responses are `google.protobuf.Struct` messages whose payload
fields carry JSON:

    request:  {"params_json": "[...]", "creds": "...", "transaction": "...", "environment": "..."}
    response: {"result_json": "..."}

`creds` and `transaction` are omitted when absent.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Sequence

import grpc
from google.protobuf import struct_pb2

from .dispatch import OperationDescriptor
from .errors import (
    AuthenticationFailure,
    CodecError,
    ConcourseError,
    ServerError,
    TransactionConflict,
    TransportFailure,
)

logger = logging.getLogger(__name__)

SERVICE_NAME = "concourse.ConcourseService"

_INTEGER_KEY = re.compile(r"-?\d+")

_AUTH_STATUSES = frozenset({grpc.StatusCode.UNAUTHENTICATED, grpc.StatusCode.PERMISSION_DENIED})
_SERVER_STATUSES = frozenset(
    {
        grpc.StatusCode.INVALID_ARGUMENT,
        grpc.StatusCode.FAILED_PRECONDITION,
        grpc.StatusCode.NOT_FOUND,
        grpc.StatusCode.OUT_OF_RANGE,
    }
)


@dataclass(frozen=True)
class AccessToken:
    """Session credential issued by Login. Opaque to the SDK."""

    data: str = field(repr=False)


@dataclass(frozen=True)
class TransactionToken:
    """Handle for a staged transaction, issued by Stage. Opaque to the SDK."""

    data: str


def _decode_result(response: struct_pb2.Struct, id_keyed: bool = False) -> Any:
    """Parse the JSON result of a response.

    Args:
        response: Response message
        id_keyed: Whether the top-level mapping is keyed by record id or
            timestamp. Only then are its keys turned back into ints; nested
            mappings are keyed by field name and keep their string keys.
    """
    if "result_json" not in response.fields:
        return None
    text = response.fields["result_json"].string_value
    if not text:
        return None
    try:
        result = json.loads(text)
    except ValueError as e:
        raise CodecError(f"Malformed result: {e}", wire_value=text) from e
    if id_keyed and isinstance(result, dict):
        return {
            (int(key) if _INTEGER_KEY.fullmatch(key) else key): value
            for key, value in result.items()
        }
    return result


class GrpcInvoker:
    """Internal gRPC client for Concourse.

    This class handles all gRPC communication with the server. It manages
    the channel lifecycle and provides blocking methods for every remote
    call. A connection-level failure closes the channel; later calls raise
    TransportFailure without touching the network.

    This is an internal class - users should use Client instead.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 1717,
        *,
        environment: str = "",
        secure: bool = False,
        credentials: grpc.ChannelCredentials | None = None,
        connect_timeout: float | None = 10.0,
        request_timeout: float | None = None,
    ) -> None:
        """Initialize the invoker.

        Args:
            host: Server hostname
            port: Server port
            environment: Server environment attached to every request
            secure: Whether to use TLS
            credentials: Optional TLS credentials
            connect_timeout: Seconds to wait for the channel to become ready
                (None skips the check)
            request_timeout: Per-call deadline in seconds (None for no deadline)
        """
        self._host = host
        self._port = port
        self._environment = environment
        self._secure = secure
        self._credentials = credentials
        self._connect_timeout = connect_timeout
        self._request_timeout = request_timeout
        self._channel: grpc.Channel | None = None
        self._methods: Dict[str, Callable[..., Any]] = {}

    @property
    def address(self) -> str:
        return f"{self._host}:{self._port}"

    @property
    def environment(self) -> str:
        return self._environment

    @property
    def is_connected(self) -> bool:
        return self._channel is not None

    def connect(self) -> None:
        """Open the channel and wait until the server is reachable.

        Raises:
            TransportFailure: If the server cannot be reached in time
        """
        if self._channel is not None:
            return

        address = self.address

        if self._secure:
            channel = grpc.secure_channel(
                address,
                self._credentials or grpc.ssl_channel_credentials(),
            )
        else:
            channel = grpc.insecure_channel(
                address,
                options=[
                    ("grpc.max_send_message_length", 50 * 1024 * 1024),
                    ("grpc.max_receive_message_length", 50 * 1024 * 1024),
                ],
            )

        if self._connect_timeout is not None:
            try:
                grpc.channel_ready_future(channel).result(timeout=self._connect_timeout)
            except grpc.FutureTimeoutError as e:
                channel.close()
                raise TransportFailure(
                    f"Could not connect to the Concourse Server at {address}",
                    address=address,
                ) from e

        self._channel = channel
        self._methods = {}
        logger.debug(f"Connected to Concourse server at {address}")

    def close(self) -> None:
        """Close the channel."""
        if self._channel is not None:
            self._channel.close()
            self._channel = None
            self._methods = {}
            logger.debug(f"Disconnected from Concourse server at {self.address}")

    def __enter__(self) -> GrpcInvoker:
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def login(self, username: str, password: str) -> AccessToken:
        """Authenticate and return the session credential.

        Raises:
            AuthenticationFailure: If the server rejects the credentials
        """
        try:
            response = self._call("Login", self._request([username, password]))
        except AuthenticationFailure as e:
            raise AuthenticationFailure(
                f"Login rejected for user '{username}': {e.message}",
                username=username,
            ) from e
        return AccessToken(str(_decode_result(response)))

    def logout(self, credential: AccessToken) -> None:
        """End the server session. The channel stays open."""
        self._call("Logout", self._request([], credential))

    def stage(self, credential: AccessToken) -> TransactionToken:
        """Start a transaction and return its token."""
        response = self._call("Stage", self._request([], credential))
        return TransactionToken(str(_decode_result(response)))

    def commit(self, credential: AccessToken, transaction: TransactionToken) -> bool:
        """Commit a transaction.

        Raises:
            TransactionConflict: If another session changed overlapping data
        """
        response = self._call("Commit", self._request([], credential, transaction))
        return bool(_decode_result(response))

    def abort(self, credential: AccessToken, transaction: TransactionToken) -> None:
        """Discard a transaction."""
        self._call("Abort", self._request([], credential, transaction))

    def invoke(
        self,
        descriptor: OperationDescriptor,
        params: Sequence[Any],
        credential: AccessToken | None,
        transaction: TransactionToken | None,
    ) -> Any:
        """Invoke a remote variant and return its encoded result."""
        response = self._call(descriptor.name, self._request(params, credential, transaction))
        return _decode_result(response, id_keyed=descriptor.id_keyed)

    def _request(
        self,
        params: Sequence[Any],
        credential: AccessToken | None = None,
        transaction: TransactionToken | None = None,
    ) -> struct_pb2.Struct:
        request = struct_pb2.Struct()
        request.update(
            {
                "params_json": json.dumps(list(params), separators=(",", ":")),
                "environment": self._environment,
            }
        )
        if credential is not None:
            request["creds"] = credential.data
        if transaction is not None:
            request["transaction"] = transaction.data
        return request

    def _ensure_connected(self) -> grpc.Channel:
        """Ensure we're connected and return the channel."""
        if self._channel is None:
            raise TransportFailure(
                f"Not connected to the Concourse Server at {self.address}",
                address=self.address,
            )
        return self._channel

    def _call(self, method: str, request: struct_pb2.Struct) -> struct_pb2.Struct:
        channel = self._ensure_connected()

        stub = self._methods.get(method)
        if stub is None:
            stub = channel.unary_unary(
                f"/{SERVICE_NAME}/{method}",
                request_serializer=struct_pb2.Struct.SerializeToString,
                response_deserializer=struct_pb2.Struct.FromString,
            )
            self._methods[method] = stub

        try:
            return stub(request, timeout=self._request_timeout)
        except grpc.RpcError as e:
            raise self._translate(method, e) from e

    def _translate(self, method: str, error: grpc.RpcError) -> ConcourseError:
        """Map a failed call to the SDK error taxonomy."""
        code = error.code() if callable(getattr(error, "code", None)) else grpc.StatusCode.UNKNOWN
        details = error.details() if callable(getattr(error, "details", None)) else str(error)

        if code == grpc.StatusCode.ABORTED:
            return TransactionConflict(details or None)
        if code in _AUTH_STATUSES:
            return AuthenticationFailure(details or "Session is not authenticated")
        if code in _SERVER_STATUSES:
            return ServerError(details or code.name, status=code.name, method=method)

        logger.warning(f"{method} failed with {code.name}; closing connection to {self.address}")
        self.close()
        return TransportFailure(f"{method} failed: {code.name}: {details}", address=self.address)
