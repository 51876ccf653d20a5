"""
Transaction state for a Concourse session.

A session is either in autocommit mode (every call is durable as soon as the
server acknowledges it) or staged (calls are buffered server-side under a
transaction token until commit or abort).

    AUTOCOMMIT --stage()--> STAGED
    STAGED --commit()/abort()--> AUTOCOMMIT

Invariants:
    - The token is only changed by stage(), commit() and abort()
    - commit() and abort() return to AUTOCOMMIT whatever the remote outcome
    - A dispatched call reads the token under the same lock the transitions
      take, so no call straddles a state change
    - Nested staging is rejected
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable, Generic, Iterator, Optional, TypeVar

from .errors import IllegalStateTransition

logger = logging.getLogger(__name__)

TokenT = TypeVar("TokenT")


class TransactionState(Enum):
    """Session transaction mode."""

    AUTOCOMMIT = "autocommit"
    STAGED = "staged"


class TransactionContext(Generic[TokenT]):
    """Holds the current transaction token and guards its transitions.

    The remote side of each transition is passed in as a callable, so the
    context owns the state machine while the transport owns the calls.

    Example:
        >>> ctx = TransactionContext()
        >>> ctx.stage(lambda: invoker.stage(creds))
        >>> with ctx.current() as token:
        ...     invoker.invoke(descriptor, params, creds, token)
        >>> ctx.commit(lambda token: invoker.commit(creds, token))
    """

    def __init__(self, *, strict: bool = False) -> None:
        """Initialize in autocommit mode.

        Args:
            strict: Whether commit()/abort() outside a transaction raise
                IllegalStateTransition instead of doing nothing
        """
        self._strict = strict
        self._token: Optional[TokenT] = None
        self._lock = threading.RLock()

    @property
    def state(self) -> TransactionState:
        with self._lock:
            return TransactionState.AUTOCOMMIT if self._token is None else TransactionState.STAGED

    @property
    def token(self) -> Optional[TokenT]:
        with self._lock:
            return self._token

    @property
    def strict(self) -> bool:
        return self._strict

    def stage(self, begin: Callable[[], TokenT]) -> TokenT:
        """Enter staged mode with a token obtained from `begin`.

        Raises:
            IllegalStateTransition: If already staged
            Exception: Whatever `begin` raises; the state stays AUTOCOMMIT
        """
        with self._lock:
            if self._token is not None:
                raise IllegalStateTransition(TransactionState.STAGED.value, "stage")
            token = begin()
            self._token = token
            logger.debug("Transaction staged")
            return token

    def commit(self, finish: Callable[[TokenT], Any]) -> Any:
        """Commit the staged work through `finish` and return its result.

        The token is cleared before `finish` runs, so a conflict or transport
        failure still leaves the context in AUTOCOMMIT.

        Returns:
            The result of `finish`, or False when there was nothing to commit

        Raises:
            IllegalStateTransition: If not staged and the context is strict
        """
        with self._lock:
            token = self._release("commit")
            if token is None:
                return False
            logger.debug("Committing transaction")
            return finish(token)

    def abort(self, discard: Callable[[TokenT], Any]) -> None:
        """Discard the staged work through `discard`.

        Raises:
            IllegalStateTransition: If not staged and the context is strict
        """
        with self._lock:
            token = self._release("abort")
            if token is None:
                return
            logger.debug("Aborting transaction")
            discard(token)

    @contextmanager
    def current(self) -> Iterator[Optional[TokenT]]:
        """Hold the context steady for one dispatched call.

        Yields:
            The current token, or None in autocommit mode
        """
        with self._lock:
            yield self._token

    def _release(self, requested: str) -> Optional[TokenT]:
        token, self._token = self._token, None
        if token is None and self._strict:
            raise IllegalStateTransition(TransactionState.AUTOCOMMIT.value, requested)
        return token
