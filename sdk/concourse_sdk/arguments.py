"""
Argument-shape resolution for the Concourse SDK.

Every logical operation (get, select, audit, add, set, time, ...) accepts a
flexible mix of positional and keyword arguments. This module turns one
such call into a canonical ShapeTag plus normalized parameter values:
- CallArguments: raw input, each value tagged with the slot it fills
- ShapeTag: which slots are present and in what form
- ResolvedCall: ShapeTag + normalized values, ready for dispatch

Example:
    >>> call = resolve(CallArguments.of(Operation.GET, key="name", record=1))
    >>> str(call.tag)
    'key=scalar, record=scalar'

Invariants:
    - Resolution is a pure function of CallArguments (no I/O, no session state)
    - Every successful resolution yields a ShapeTag registered in the dispatch table
    - Caller errors are raised here, before any network interaction
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple, Union

from .errors import AmbiguousArguments, InvalidArguments, MissingRequiredArguments


class Operation(Enum):
    """Logical operation families exposed by the client."""

    ADD = "add"
    AUDIT = "audit"
    GET = "get"
    SELECT = "select"
    SET = "set"
    TIME = "time"
    SERVER_ENVIRONMENT = "get_server_environment"
    SERVER_VERSION = "get_server_version"


class Shape(Enum):
    """Form in which a slot was supplied."""

    ABSENT = "absent"
    SCALAR = "scalar"
    COLLECTION = "collection"
    INSTANT = "absoluteInstant"
    PHRASE = "phrase"


# Canonical slot order. Remote parameters are always passed in this order.
SLOTS: Tuple[str, ...] = ("key", "value", "criteria", "record", "timestamp", "start", "end")

_PLURALS = {"key": "keys", "record": "records"}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ShapeTag:
    """Canonical descriptor of which slots are present and in which shape.

    Two calls with the same ShapeTag for the same operation always dispatch
    to the same remote variant.
    """

    key: Shape = Shape.ABSENT
    value: Shape = Shape.ABSENT
    criteria: Shape = Shape.ABSENT
    record: Shape = Shape.ABSENT
    timestamp: Shape = Shape.ABSENT
    start: Shape = Shape.ABSENT
    end: Shape = Shape.ABSENT

    def present(self) -> Tuple[str, ...]:
        """Return the present slots in canonical order."""
        return tuple(slot for slot in SLOTS if getattr(self, slot) is not Shape.ABSENT)

    def __str__(self) -> str:
        parts = []
        for slot in self.present():
            shape = getattr(self, slot)
            name = _PLURALS.get(slot, slot) if shape is Shape.COLLECTION else slot
            parts.append(f"{name}={shape.value}")
        return ", ".join(parts) or "no arguments"


@dataclass(frozen=True)
class Instant:
    """An absolute point in time, in microseconds since the Unix epoch."""

    micros: int

    @classmethod
    def from_datetime(cls, moment: datetime) -> Instant:
        """Convert a datetime. Naive datetimes are taken as local time."""
        delta = moment.astimezone(timezone.utc) - _EPOCH
        return cls((delta.days * 86400 + delta.seconds) * 1_000_000 + delta.microseconds)


@dataclass(frozen=True)
class Phrase:
    """A natural-language description of a time (e.g. "last month").

    Phrases are resolved to an Instant by the server.
    """

    text: str


Timestamp = Union[Instant, Phrase]


@dataclass(frozen=True)
class Signature:
    """Argument rules for one operation family.

    Attributes:
        positional: Parameter names bound to positional arguments, in order
        allowed: Slot -> shapes the operation accepts for it
        aliases: Operation-specific name -> slot overrides
        exclusive: Slots that must not be supplied together
        one_of: At least one of these slots is required
        all_of: All of these slots are required
        requirement: Human description of the minimum combination
        time_range: (start, end) slots that form a range, if any
    """

    positional: Tuple[str, ...]
    allowed: Mapping[str, FrozenSet[Shape]]
    aliases: Mapping[str, str] = field(default_factory=dict)
    exclusive: Tuple[str, ...] = ()
    one_of: Tuple[str, ...] = ()
    all_of: Tuple[str, ...] = ()
    requirement: Optional[str] = None
    time_range: Optional[Tuple[str, str]] = None

    def slot_for(self, name: str) -> str:
        """Map a parameter name (or alias) to its slot."""
        slot = _ALIASES.get(name, name)
        return self.aliases.get(slot, slot)


_ALIASES = {
    "keys": "key",
    "records": "record",
    "ccl": "criteria",
    "where": "criteria",
    "query": "criteria",
    "time": "timestamp",
    "ts": "timestamp",
}

_SCALAR = frozenset({Shape.SCALAR})
_SCALAR_OR_COLLECTION = frozenset({Shape.SCALAR, Shape.COLLECTION})
_ANY_TIME = frozenset({Shape.INSTANT, Shape.PHRASE})

_READ = Signature(
    positional=("keys", "criteria", "records", "timestamp"),
    allowed={
        "key": _SCALAR_OR_COLLECTION,
        "criteria": _SCALAR,
        "record": _SCALAR_OR_COLLECTION,
        "timestamp": _ANY_TIME,
    },
    exclusive=("criteria", "record"),
    one_of=("criteria", "record"),
    requirement="criteria or record",
)

_WRITE = Signature(
    positional=("key", "value", "records"),
    allowed={
        "key": _SCALAR,
        "value": _SCALAR,
        "record": _SCALAR_OR_COLLECTION,
    },
    all_of=("key", "value"),
    requirement="key and value",
)

SIGNATURES: Dict[Operation, Signature] = {
    Operation.ADD: _WRITE,
    Operation.SET: _WRITE,
    Operation.GET: _READ,
    Operation.SELECT: _READ,
    Operation.AUDIT: Signature(
        positional=("key", "record", "start", "end"),
        allowed={
            "key": _SCALAR,
            "record": _SCALAR,
            "start": _ANY_TIME,
            "end": _ANY_TIME,
        },
        aliases={"timestamp": "start"},
        all_of=("record",),
        requirement="record",
        time_range=("start", "end"),
    ),
    Operation.TIME: Signature(
        positional=("phrase",),
        allowed={"timestamp": frozenset({Shape.PHRASE})},
        aliases={"phrase": "timestamp"},
    ),
    Operation.SERVER_ENVIRONMENT: Signature(positional=(), allowed={}),
    Operation.SERVER_VERSION: Signature(positional=(), allowed={}),
}


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_key(value: Any) -> bool:
    return isinstance(value, str) and bool(value)


@dataclass(frozen=True)
class CallArguments:
    """Raw arguments of one logical call.

    Attributes:
        operation: Operation family being called
        supplied: (slot, parameter name as given, raw value) triples
    """

    operation: Operation
    supplied: Tuple[Tuple[str, str, Any], ...] = ()

    @classmethod
    def of(cls, operation: Operation, *args: Any, **kwargs: Any) -> CallArguments:
        """Bind positional and keyword arguments to slots.

        Raises:
            InvalidArguments: If more positional arguments are given than
                the operation takes
        """
        signature = SIGNATURES[operation]
        positional = signature.positional
        # audit(1, ...) audits a whole record; later arguments shift left.
        if operation is Operation.AUDIT and args and _is_integer(args[0]):
            positional = positional[1:]

        if len(args) > len(positional):
            raise InvalidArguments(
                operation.value,
                "*args",
                f"takes at most {len(positional)} positional arguments ({len(args)} given)",
            )

        supplied = [(signature.slot_for(name), name, value) for name, value in zip(positional, args)]
        supplied.extend((signature.slot_for(name), name, value) for name, value in kwargs.items())
        return cls(operation, tuple(supplied))


@dataclass(frozen=True)
class ResolvedCall:
    """A call reduced to its ShapeTag and normalized values.

    Attributes:
        operation: Operation family
        tag: Canonical shape of the call
        values: Slot -> normalized value (str, int, list, Instant, Phrase, ...)
    """

    operation: Operation
    tag: ShapeTag
    values: Dict[str, Any] = field(default_factory=dict)

    def ordered(self, params: Sequence[str]) -> list:
        """Return the values for `params`, in that order."""
        return [self.values[param] for param in params]


def resolve(call: CallArguments) -> ResolvedCall:
    """Resolve a call's arguments into a ShapeTag and normalized values.

    Args:
        call: Raw call arguments

    Returns:
        ResolvedCall for dispatch

    Raises:
        AmbiguousArguments: If mutually exclusive parameters are supplied
        InvalidArguments: If a value has the wrong type or is not accepted
        MissingRequiredArguments: If the minimum combination is not supplied
    """
    operation = call.operation
    signature = SIGNATURES[operation]
    name = operation.value

    given: Dict[str, Tuple[str, Any]] = {}
    for slot, param, value in call.supplied:
        if value is None:
            continue
        if slot in given:
            raise AmbiguousArguments(name, [given[slot][0], param])
        given[slot] = (param, value)

    _disambiguate(operation, given)

    shapes: Dict[str, Shape] = {}
    values: Dict[str, Any] = {}
    for slot, (param, raw) in given.items():
        allowed = signature.allowed.get(slot)
        if allowed is None:
            raise InvalidArguments(name, param, "is not accepted")
        shape, value = _classify(name, slot, param, raw)
        if shape not in allowed:
            expected = " or ".join(sorted(s.value for s in allowed))
            raise InvalidArguments(name, param, f"must be {expected}, got {shape.value}")
        shapes[slot] = shape
        values[slot] = value

    _check_combination(signature, name, given, shapes)
    return ResolvedCall(operation=operation, tag=ShapeTag(**shapes), values=values)


def _disambiguate(operation: Operation, given: Dict[str, Tuple[str, Any]]) -> None:
    """Reinterpret bare integers that stand for a record."""
    if operation in (Operation.GET, Operation.SELECT):
        source = "criteria"
    elif operation is Operation.AUDIT:
        source = "key"
    else:
        return

    entry = given.get(source)
    if entry is None or not _is_integer(entry[1]):
        return
    if "record" in given:
        raise AmbiguousArguments(operation.value, [given["record"][0], entry[0]])
    given["record"] = given.pop(source)


def _classify(name: str, slot: str, param: str, raw: Any) -> Tuple[Shape, Any]:
    if slot == "key":
        return _scalar_or_collection(name, param, raw, _is_key, "a key name")
    if slot == "record":
        return _scalar_or_collection(name, param, raw, _is_integer, "a record id")
    if slot == "criteria":
        if isinstance(raw, str):
            if not raw.strip():
                raise InvalidArguments(name, param, "must not be blank")
            return Shape.SCALAR, raw
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return Shape.SCALAR, str(raw)
        raise InvalidArguments(name, param, f"must be a criteria string, got {type(raw).__name__}")
    if slot == "value":
        if isinstance(raw, (list, tuple, set, frozenset, dict)):
            raise InvalidArguments(name, param, "must be a single value, not a collection")
        return Shape.SCALAR, raw
    return _classify_time(name, param, raw)


def _scalar_or_collection(
    name: str,
    param: str,
    raw: Any,
    accepts: Callable[[Any], bool],
    noun: str,
) -> Tuple[Shape, Any]:
    if accepts(raw):
        return Shape.SCALAR, raw
    if isinstance(raw, (list, tuple)):
        if not raw:
            raise InvalidArguments(name, param, "must not be empty")
        for item in raw:
            if not accepts(item):
                raise InvalidArguments(name, param, f"must contain only {noun}s, got {item!r}")
        return Shape.COLLECTION, list(raw)
    raise InvalidArguments(
        name, param, f"must be {noun} or a list of them, got {type(raw).__name__}"
    )


def _classify_time(name: str, param: str, raw: Any) -> Tuple[Shape, Timestamp]:
    if isinstance(raw, Instant):
        return Shape.INSTANT, raw
    if isinstance(raw, Phrase):
        return Shape.PHRASE, raw
    if isinstance(raw, bool):
        raise InvalidArguments(name, param, "must be a timestamp, got bool")
    if isinstance(raw, (int, float)):
        if isinstance(raw, float) and not math.isfinite(raw):
            raise InvalidArguments(name, param, "must be a finite number of microseconds")
        return Shape.INSTANT, Instant(int(raw))
    if isinstance(raw, datetime):
        return Shape.INSTANT, Instant.from_datetime(raw)
    if isinstance(raw, str):
        if not raw.strip():
            raise InvalidArguments(name, param, "must not be blank")
        return Shape.PHRASE, Phrase(raw)
    raise InvalidArguments(
        name,
        param,
        f"must be microseconds, a datetime or a phrase, got {type(raw).__name__}",
    )


def _check_combination(
    signature: Signature,
    name: str,
    given: Dict[str, Tuple[str, Any]],
    shapes: Dict[str, Shape],
) -> None:
    clashing = [given[slot][0] for slot in signature.exclusive if slot in shapes]
    if len(clashing) > 1:
        raise AmbiguousArguments(name, clashing)

    if signature.one_of and not any(slot in shapes for slot in signature.one_of):
        raise MissingRequiredArguments(name, signature.requirement or " or ".join(signature.one_of))

    if not all(slot in shapes for slot in signature.all_of):
        raise MissingRequiredArguments(name, signature.requirement or " and ".join(signature.all_of))

    if signature.time_range:
        start, end = signature.time_range
        if end in shapes and start not in shapes:
            raise MissingRequiredArguments(name, start)
        if end in shapes and shapes[end] is not shapes[start]:
            raise InvalidArguments(
                name, given[end][0], f"must be the same kind of timestamp as '{given[start][0]}'"
            )
