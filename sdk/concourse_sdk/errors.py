"""
Error types for the Concourse SDK.

This module defines all exception types raised by the SDK:
- ConcourseError: Base exception
- ArgumentError: Caller supplied an unusable argument combination
  (MissingRequiredArguments, AmbiguousArguments, InvalidArguments)
- UnsupportedShape: Resolver produced a shape with no dispatch entry
- IllegalStateTransition: Invalid transaction state request
- TransactionConflict: Commit lost to a concurrent modification
- TransportFailure: Connection-level failure
- AuthenticationFailure: Login rejected or session no longer valid
- ServerError: Server rejected a well-formed request
- CodecError: Wire value could not be decoded

Invariants:
    - All errors inherit from ConcourseError
    - Argument errors are raised before any network interaction
    - Error messages never include passwords or access tokens
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class ConcourseError(Exception):
    """Base exception for all Concourse SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "CONCOURSE_ERROR"
        self.details = details or {}


class ArgumentError(ConcourseError):
    """Base class for caller errors detected while resolving arguments."""


class MissingRequiredArguments(ArgumentError):
    """No registered variant matches the supplied arguments.

    Attributes:
        operation: Logical operation name (e.g. "select")
        requirement: Minimum combination the caller must supply
    """

    def __init__(self, operation: str, requirement: str) -> None:
        super().__init__(
            f"{requirement} is required for {operation}()",
            code="MISSING_REQUIRED_ARGUMENTS",
            details={"operation": operation, "requirement": requirement},
        )
        self.operation = operation
        self.requirement = requirement


class AmbiguousArguments(ArgumentError):
    """Mutually exclusive parameters were supplied together.

    Attributes:
        operation: Logical operation name
        parameters: The conflicting parameter names, as given
    """

    def __init__(self, operation: str, parameters: Sequence[str]) -> None:
        parameters = list(parameters)
        super().__init__(
            f"{operation}() received mutually exclusive arguments: {', '.join(parameters)}",
            code="AMBIGUOUS_ARGUMENTS",
            details={"operation": operation, "parameters": parameters},
        )
        self.operation = operation
        self.parameters = parameters


class InvalidArguments(ArgumentError):
    """A parameter has a value of the wrong kind or is not accepted.

    Attributes:
        operation: Logical operation name
        parameter: Offending parameter name
        reason: What is wrong with it
    """

    def __init__(self, operation: str, parameter: str, reason: str) -> None:
        super().__init__(
            f"{operation}() argument '{parameter}' {reason}",
            code="INVALID_ARGUMENTS",
            details={"operation": operation, "parameter": parameter, "reason": reason},
        )
        self.operation = operation
        self.parameter = parameter
        self.reason = reason


class UnsupportedShape(ConcourseError):
    """The dispatch table has no entry for a resolved shape.

    This signals a mismatch between the resolver and the table, not a
    caller mistake.
    """

    def __init__(self, operation: str, shape: str) -> None:
        super().__init__(
            f"No remote variant of {operation}() is registered for shape ({shape})",
            code="UNSUPPORTED_SHAPE",
            details={"operation": operation, "shape": shape},
        )
        self.operation = operation
        self.shape = shape


class IllegalStateTransition(ConcourseError):
    """Invalid transaction state request. State is left unchanged.

    Attributes:
        state: Current transaction state
        requested: The transition that was requested
    """

    def __init__(self, state: str, requested: str) -> None:
        super().__init__(
            f"Cannot {requested}() while in {state} mode",
            code="ILLEGAL_STATE_TRANSITION",
            details={"state": state, "requested": requested},
        )
        self.state = state
        self.requested = requested


class TransactionConflict(ConcourseError):
    """Another client changed data used within the current transaction.

    The caller should abort (if still staged) and retry the whole staged
    sequence with a fresh stage().
    """

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(
            message
            or (
                "Another client has made changes to data used within the current "
                "transaction, so it cannot continue. Please abort the transaction "
                "and try again."
            ),
            code="TRANSACTION_CONFLICT",
        )


class TransportFailure(ConcourseError):
    """Connection-level failure. The connection is no longer usable.

    Raised when:
    - Server is unreachable
    - The call failed in transit
    - The client was already closed
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSPORT_FAILURE",
            details={"address": address},
        )
        self.address = address


class AuthenticationFailure(ConcourseError):
    """Login handshake rejected or session credential no longer valid."""

    def __init__(
        self,
        message: str,
        username: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="AUTHENTICATION_FAILURE",
            details={"username": username},
        )
        self.username = username


class ServerError(ConcourseError):
    """The server rejected a request (e.g. unparsable criteria).

    The connection stays usable.
    """

    def __init__(
        self,
        message: str,
        status: Optional[str] = None,
        method: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="SERVER_ERROR",
            details={"status": status, "method": method},
        )
        self.status = status
        self.method = method


class CodecError(ConcourseError):
    """A wire value could not be decoded."""

    def __init__(self, message: str, wire_value: Any = None) -> None:
        super().__init__(
            message,
            code="CODEC_ERROR",
            details={"wire_value": wire_value},
        )
        self.wire_value = wire_value
