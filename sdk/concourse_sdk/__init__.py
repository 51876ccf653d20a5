"""
Concourse Python SDK - Client library for the Concourse database.

Concourse is a schemaless, versioned store of records, keys and values.
This SDK provides:
- Client for connecting to the server and calling its operations
- Argument resolution that maps flexible call arguments to one remote variant
- Transaction staging (stage / commit / abort)
- Value types that round-trip through the server (Link, Tag)

Example:
    >>> from concourse_sdk import connect
    >>>
    >>> with connect(host="localhost", port=1717) as db:
    ...     record = db.add("name", "Jeff")
    ...     db.get(key="name", record=record)
    ...     db.audit(record, "last week")

Invariants:
    - Argument errors are raised before any network call
    - Every call made while staged carries the current transaction token
    - commit() and abort() always return the client to autocommit

Version: 1.0.0
"""

__version__ = "1.0.0"

from .arguments import (
    CallArguments,
    Instant,
    Operation,
    Phrase,
    ResolvedCall,
    Shape,
    ShapeTag,
    resolve,
)
from .client import Client, connect
from .codec import Link, Tag, ValueCodec
from .config import ClientConfig
from .dispatch import DISPATCH_TABLE, DispatchTable, OperationDescriptor
from .errors import (
    AmbiguousArguments,
    ArgumentError,
    AuthenticationFailure,
    CodecError,
    ConcourseError,
    IllegalStateTransition,
    InvalidArguments,
    MissingRequiredArguments,
    ServerError,
    TransactionConflict,
    TransportFailure,
    UnsupportedShape,
)
from .executor import DispatchExecutor, RemoteOperationInvoker
from .transaction import TransactionContext, TransactionState

__all__ = [
    # Version
    "__version__",
    # Client
    "Client",
    "ClientConfig",
    "connect",
    # Values
    "Link",
    "Tag",
    "ValueCodec",
    # Resolution and dispatch
    "CallArguments",
    "Instant",
    "Operation",
    "Phrase",
    "ResolvedCall",
    "Shape",
    "ShapeTag",
    "resolve",
    "DISPATCH_TABLE",
    "DispatchTable",
    "OperationDescriptor",
    "DispatchExecutor",
    "RemoteOperationInvoker",
    # Transactions
    "TransactionContext",
    "TransactionState",
    # Errors
    "ConcourseError",
    "ArgumentError",
    "MissingRequiredArguments",
    "AmbiguousArguments",
    "InvalidArguments",
    "UnsupportedShape",
    "IllegalStateTransition",
    "TransactionConflict",
    "TransportFailure",
    "AuthenticationFailure",
    "ServerError",
    "CodecError",
]
