"""
Dispatch execution: the seam between argument resolution and the transport.

DispatchExecutor takes a ResolvedCall, looks up its remote variant, orders
and encodes the parameters, attaches the session credential and the current
transaction token, and hands the call to a RemoteOperationInvoker.

Invariants:
    - Table lookup happens before any network interaction
    - Only the `value` slot goes through the value codec on the way out;
      every result goes through it on the way back
    - The transaction token is read under the TransactionContext lock for
      the whole remote call
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence, runtime_checkable

from .arguments import Instant, Phrase, ResolvedCall
from .codec import ValueCodec
from .dispatch import DISPATCH_TABLE, DispatchTable, OperationDescriptor
from .transaction import TransactionContext

logger = logging.getLogger(__name__)


@runtime_checkable
class RemoteOperationInvoker(Protocol):
    """Performs one remote call.

    Implementations own the connection. They must preserve call ordering
    relative to the issuing thread and raise (never return) failures.
    """

    def invoke(
        self,
        descriptor: OperationDescriptor,
        params: Sequence[Any],
        credential: Any,
        transaction: Optional[Any],
    ) -> Any:
        """Invoke `descriptor.name` with positional `params`.

        Returns:
            The encoded result

        Raises:
            TransportFailure: If the connection failed
        """
        ...


class DispatchExecutor:
    """Executes resolved calls against a RemoteOperationInvoker.

    Example:
        >>> executor = DispatchExecutor(invoker, TransactionContext(), credential)
        >>> call = resolve(CallArguments.of(Operation.GET, key="name", record=1))
        >>> executor.execute(call)
        'Jeff'
    """

    def __init__(
        self,
        invoker: RemoteOperationInvoker,
        transaction: TransactionContext,
        credential: Any,
        *,
        table: DispatchTable = DISPATCH_TABLE,
        codec: Optional[ValueCodec] = None,
    ) -> None:
        self._invoker = invoker
        self._transaction = transaction
        self._credential = credential
        self._table = table
        self.codec = codec or ValueCodec()

    def execute(self, call: ResolvedCall) -> Any:
        """Dispatch a resolved call and return its decoded result.

        Raises:
            UnsupportedShape: If the table has no variant for the call
        """
        descriptor = self._table.lookup(call.operation, call.tag)
        params = self.prepare(descriptor, call)

        with self._transaction.current() as token:
            logger.debug(f"Dispatching {descriptor.name} ({'staged' if token is not None else 'autocommit'})")
            result = self._invoker.invoke(descriptor, params, self._credential, token)

        return self.codec.decode(result)

    def prepare(self, descriptor: OperationDescriptor, call: ResolvedCall) -> List[Any]:
        """Order and encode the parameters of a call for `descriptor`."""
        params = []
        for slot, value in zip(descriptor.params, call.ordered(descriptor.params)):
            if slot == "value":
                params.append(self.codec.encode(value))
            elif isinstance(value, Instant):
                params.append(value.micros)
            elif isinstance(value, Phrase):
                params.append(value.text)
            else:
                params.append(value)
        return params
