"""
Concourse Client for Python SDK.

This module provides the main client interface:
- Client: A session with a Concourse server
- connect(): Alias for the Client constructor

Every data operation accepts flexible arguments (a key or many keys, a
record or many records, a criteria string, an optional timestamp given as
microseconds, a datetime or a natural-language phrase). Arguments are
resolved to exactly one remote variant before anything is sent.

Example:
    >>> with connect(host="localhost", port=1717) as db:
    ...     record = db.add("name", "Jeff")
    ...     db.get(key="name", record=record)
    ...     db.select(keys=["name", "age"], criteria="age > 30", timestamp="last month")
    ...     with db.atomic():
    ...         db.set("name", "Jeff Nelson", record)

Invariants:
    - One credential, one transaction context and one connection per client
    - Argument errors are raised before any network interaction
    - close() always releases the connection, even with a transaction open
"""

from __future__ import annotations

import dataclasses
import logging
from contextlib import contextmanager
from typing import Any, Iterator

from ._grpc_client import AccessToken, GrpcInvoker, TransactionToken
from .arguments import CallArguments, Operation, resolve
from .config import ClientConfig
from .errors import ConcourseError, TransportFailure
from .executor import DispatchExecutor
from .transaction import TransactionContext, TransactionState

logger = logging.getLogger(__name__)


class Client:
    """A session with a Concourse server.

    The constructor connects and logs in. By default every write is
    committed immediately (autocommit); stage() collects subsequent
    operations into a transaction until commit() or abort().

    A client is not safe to share between threads that stage or commit
    concurrently; callers must serialize transaction control themselves.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        environment: str | None = None,
        *,
        config: ClientConfig | None = None,
        invoker: GrpcInvoker | None = None,
    ) -> None:
        """Connect and authenticate.

        Args:
            host: Server host (overrides config)
            port: Server port (overrides config)
            username: Username (overrides config)
            password: Password (overrides config)
            environment: Server environment (overrides config)
            config: Base configuration, defaults to ClientConfig()
            invoker: Transport to use instead of a new GrpcInvoker

        Raises:
            TransportFailure: If the server cannot be reached
            AuthenticationFailure: If the login is rejected
        """
        overrides = {
            name: value
            for name, value in (
                ("host", host),
                ("port", port),
                ("username", username),
                ("password", password),
                ("environment", environment),
            )
            if value is not None
        }
        self.config = dataclasses.replace(config or ClientConfig(), **overrides)

        self._invoker = invoker or GrpcInvoker(
            self.config.host,
            self.config.port,
            environment=self.config.environment,
            secure=self.config.secure,
            connect_timeout=self.config.connect_timeout,
            request_timeout=self.config.request_timeout,
        )
        self._transaction: TransactionContext[TransactionToken] = TransactionContext(
            strict=self.config.strict_transactions
        )
        self._closed = False

        try:
            self._invoker.connect()
            self._credential: AccessToken = self._invoker.login(
                self.config.username, self.config.password
            )
        except Exception:
            self._invoker.close()
            raise

        self._executor = DispatchExecutor(self._invoker, self._transaction, self._credential)
        logger.debug(f"Logged in to {self.config.address} as {self.config.username}")

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"Client(address={self.config.address!r}, "
            f"environment={self.config.environment!r}, "
            f"state={self.transaction_state.value!r})"
        )

    @property
    def transaction_state(self) -> TransactionState:
        """Current transaction mode."""
        return self._transaction.state

    @property
    def in_transaction(self) -> bool:
        return self._transaction.state is TransactionState.STAGED

    @property
    def closed(self) -> bool:
        return self._closed

    # Data operations

    def add(self, *args: Any, **kwargs: Any) -> Any:
        """Add a value to a key in a new record, one record, or many records.

        Args (positional order):
            key: The field name (required)
            value: The value to add (required)
            records: A record id or a list of record ids (optional;
                `record` is accepted as a keyword)

        Returns:
            The id of a new record when no record is given; a bool telling
            whether the value was added when one record is given; a mapping
            from record id to bool when several are given.

        Raises:
            MissingRequiredArguments: If key or value is missing
            AmbiguousArguments: If both record and records are given
        """
        return self._dispatch(Operation.ADD, *args, **kwargs)

    def audit(self, *args: Any, **kwargs: Any) -> Any:
        """Describe the changes made to a record or a field over time.

        Args (positional order):
            key: The field name (optional; when the first positional argument
                is an int it is taken as the record and the rest shift left)
            record: The record id (required)
            start: Beginning of the range, as microseconds, datetime or phrase
                (optional; `timestamp` is accepted as a keyword)
            end: End of the range, of the same kind as start (optional)

        Returns:
            A mapping from timestamp to a description of the change.

        Raises:
            MissingRequiredArguments: If no record is given, or end without start
            InvalidArguments: If start and end are of different kinds
        """
        return self._dispatch(Operation.AUDIT, *args, **kwargs)

    def get(self, *args: Any, **kwargs: Any) -> Any:
        """Get the most recently added value(s) from one or more fields.

        Args (positional order):
            keys: A key or a list of keys (optional; `key` also accepted)
            criteria: A criteria string selecting records (an int here is
                taken as a record id; `ccl`, `where`, `query` also accepted)
            records: A record id or a list of record ids (`record` also accepted)
            timestamp: Read as of this time, as microseconds, datetime or
                phrase (optional; `time`, `ts` also accepted)

        Returns:
            The value for key+record; otherwise mappings from record to key
            to value, shaped after the arguments.

        Raises:
            MissingRequiredArguments: If neither criteria nor a record is given
            AmbiguousArguments: If mutually exclusive arguments are given
        """
        return self._dispatch(Operation.GET, *args, **kwargs)

    def select(self, *args: Any, **kwargs: Any) -> Any:
        """Select all values from one or more fields.

        Takes the same arguments as get(). Each field maps to the list of
        all its values instead of the most recent one.
        """
        return self._dispatch(Operation.SELECT, *args, **kwargs)

    def set(self, *args: Any, **kwargs: Any) -> Any:
        """Atomically replace all values in a field with a single value.

        Takes the same arguments as add().

        Returns:
            The id of a new record when no record is given, otherwise None.
        """
        return self._dispatch(Operation.SET, *args, **kwargs)

    def time(self, phrase: str | None = None) -> int:
        """Return a unix timestamp in microseconds.

        Args:
            phrase: A natural language description of the time to return
                (e.g. "3 weeks ago"); the server's current time if omitted
        """
        return self._dispatch(Operation.TIME, phrase)

    def get_server_environment(self) -> str:
        """Return the environment this session is connected to."""
        return self._dispatch(Operation.SERVER_ENVIRONMENT)

    def get_server_version(self) -> str:
        """Return the version of the connected server."""
        return self._dispatch(Operation.SERVER_VERSION)

    # Transactions

    def stage(self) -> None:
        """Start a transaction.

        All subsequent operations are staged until commit() or abort().

        Raises:
            IllegalStateTransition: If a transaction is already staged
        """
        self._ensure_open()
        self._transaction.stage(lambda: self._invoker.stage(self._credential))

    def commit(self) -> bool:
        """Commit the staged operations as one unit and return to autocommit.

        Returns:
            Whether the server committed; False if nothing was staged

        Raises:
            TransactionConflict: If another session changed overlapping data.
                The staged work is discarded; stage() again to retry.
            IllegalStateTransition: If nothing is staged and the client is
                configured with strict_transactions
        """
        self._ensure_open()
        return self._transaction.commit(
            lambda token: self._invoker.commit(self._credential, token)
        )

    def abort(self) -> None:
        """Discard the staged operations and return to autocommit.

        Does nothing when no transaction is staged, unless the client is
        configured with strict_transactions.
        """
        self._ensure_open()
        self._transaction.abort(lambda token: self._invoker.abort(self._credential, token))

    @contextmanager
    def atomic(self) -> Iterator[Client]:
        """Run a block in a transaction.

        Stages on entry and commits when the block finishes. If the block
        raises, the transaction is aborted and the exception propagates;
        a failed abort is logged so the block's exception is the one raised.

        Example:
            >>> with db.atomic():
            ...     db.add("name", "Jeff", 1)
            ...     db.set("age", 30, 1)
        """
        self.stage()
        try:
            yield self
        except BaseException:
            if self.in_transaction:
                try:
                    self.abort()
                except ConcourseError as e:
                    logger.warning(f"Failed to abort transaction after error: {e.message}")
            raise
        self.commit()

    # Session

    def logout(self) -> None:
        """End the server session without closing the connection."""
        self._ensure_open()
        self._invoker.logout(self._credential)

    def close(self) -> None:
        """Abort any open transaction, log out and close the connection.

        Cleanup failures are logged; the connection is always released.
        """
        if self._closed:
            return
        self._closed = True

        try:
            if self.in_transaction:
                try:
                    self._transaction.abort(
                        lambda token: self._invoker.abort(self._credential, token)
                    )
                except ConcourseError as e:
                    logger.warning(f"Failed to abort open transaction on close: {e.message}")

            if self.config.logout_on_close and self._invoker.is_connected:
                try:
                    self._invoker.logout(self._credential)
                except ConcourseError as e:
                    logger.warning(f"Failed to log out on close: {e.message}")
        finally:
            self._invoker.close()
            logger.debug(f"Closed connection to {self.config.address}")

    def _ensure_open(self) -> None:
        if self._closed:
            raise TransportFailure("Client is closed", address=self.config.address)

    def _dispatch(self, operation: Operation, *args: Any, **kwargs: Any) -> Any:
        call = resolve(CallArguments.of(operation, *args, **kwargs))
        self._ensure_open()
        return self._executor.execute(call)


def connect(
    host: str | None = None,
    port: int | None = None,
    username: str | None = None,
    password: str | None = None,
    environment: str | None = None,
    **kwargs: Any,
) -> Client:
    """Alias for the Client constructor."""
    return Client(
        host=host,
        port=port,
        username=username,
        password=password,
        environment=environment,
        **kwargs,
    )
