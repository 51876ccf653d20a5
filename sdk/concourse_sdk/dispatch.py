"""
Operation dispatch table for the Concourse SDK.

Maps each (Operation, ShapeTag) pair to exactly one remote-call variant.
The table is plain data: an OperationDescriptor carries the remote method
name and the order of the parameters it expects, nothing else.

Example:
    >>> tag = ShapeTag(key=Shape.SCALAR, record=Shape.SCALAR)
    >>> DISPATCH_TABLE.lookup(Operation.GET, tag).name
    'GetKeyRecord'

Invariants:
    - Non-overlapping: a (operation, tag) pair is registered at most once
      (checked when the table is built)
    - Exhaustive: every tag the resolver can produce has an entry
      (checked by the test suite)
    - Parameters are ordered by the canonical slot order of ShapeTag
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from .arguments import Operation, Shape, ShapeTag
from .errors import UnsupportedShape

_SCALAR = Shape.SCALAR
_COLLECTION = Shape.COLLECTION
_INSTANT = Shape.INSTANT
_PHRASE = Shape.PHRASE


@dataclass(frozen=True)
class OperationDescriptor:
    """One remote-call variant.

    Attributes:
        operation: Operation family the variant belongs to
        name: Remote method name
        tag: Shape the variant serves
        params: Slot names in the order the remote method expects them
        id_keyed: Whether the result is a mapping keyed by record id or
            timestamp (its JSON object keys are integers in string form)
    """

    operation: Operation
    name: str
    tag: ShapeTag
    params: Tuple[str, ...]
    id_keyed: bool = False


def _variant(operation: Operation, name: str, **shapes: Shape) -> OperationDescriptor:
    tag = ShapeTag(**shapes)
    # Results span records when records are selected by criteria or as a
    # collection; audits are keyed by timestamp.
    id_keyed = (
        operation is Operation.AUDIT
        or tag.criteria is not Shape.ABSENT
        or tag.record is Shape.COLLECTION
    )
    return OperationDescriptor(
        operation=operation, name=name, tag=tag, params=tag.present(), id_keyed=id_keyed
    )


class DispatchTable:
    """Lookup from (operation, shape tag) to remote-call descriptor."""

    def __init__(self, descriptors: Iterable[OperationDescriptor]) -> None:
        """Build the table.

        Raises:
            ValueError: If two descriptors share an (operation, tag) pair
        """
        self._entries: Dict[Tuple[Operation, ShapeTag], OperationDescriptor] = {}
        for descriptor in descriptors:
            entry = (descriptor.operation, descriptor.tag)
            if entry in self._entries:
                raise ValueError(
                    f"{descriptor.name} and {self._entries[entry].name} both serve "
                    f"{descriptor.operation.value}({descriptor.tag})"
                )
            self._entries[entry] = descriptor

    def lookup(self, operation: Operation, tag: ShapeTag) -> OperationDescriptor:
        """Return the descriptor for a resolved call.

        Raises:
            UnsupportedShape: If no variant is registered for the pair
        """
        try:
            return self._entries[(operation, tag)]
        except KeyError:
            raise UnsupportedShape(operation.value, str(tag)) from None

    def descriptors(self, operation: Optional[Operation] = None) -> List[OperationDescriptor]:
        """Return registered descriptors, optionally for one operation."""
        return [
            descriptor
            for (op, _), descriptor in self._entries.items()
            if operation is None or op is operation
        ]

    def tags(self, operation: Operation) -> FrozenSet[ShapeTag]:
        """Return every shape registered for an operation."""
        return frozenset(tag for op, tag in self._entries if op is operation)

    def __contains__(self, entry: object) -> bool:
        return entry in self._entries

    def __iter__(self) -> Iterator[OperationDescriptor]:
        return iter(self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)


_GET = Operation.GET
_SELECT = Operation.SELECT
_AUDIT = Operation.AUDIT

DISPATCH_TABLE = DispatchTable(
    [
        # add / set
        _variant(Operation.ADD, "AddKeyValue", key=_SCALAR, value=_SCALAR),
        _variant(Operation.ADD, "AddKeyValueRecord", key=_SCALAR, value=_SCALAR, record=_SCALAR),
        _variant(Operation.ADD, "AddKeyValueRecords", key=_SCALAR, value=_SCALAR, record=_COLLECTION),
        _variant(Operation.SET, "SetKeyValue", key=_SCALAR, value=_SCALAR),
        _variant(Operation.SET, "SetKeyValueRecord", key=_SCALAR, value=_SCALAR, record=_SCALAR),
        _variant(Operation.SET, "SetKeyValueRecords", key=_SCALAR, value=_SCALAR, record=_COLLECTION),
        # get
        _variant(_GET, "GetCcl", criteria=_SCALAR),
        _variant(_GET, "GetCclTime", criteria=_SCALAR, timestamp=_INSTANT),
        _variant(_GET, "GetCclTimestr", criteria=_SCALAR, timestamp=_PHRASE),
        _variant(_GET, "GetRecord", record=_SCALAR),
        _variant(_GET, "GetRecordTime", record=_SCALAR, timestamp=_INSTANT),
        _variant(_GET, "GetRecordTimestr", record=_SCALAR, timestamp=_PHRASE),
        _variant(_GET, "GetRecords", record=_COLLECTION),
        _variant(_GET, "GetRecordsTime", record=_COLLECTION, timestamp=_INSTANT),
        _variant(_GET, "GetRecordsTimestr", record=_COLLECTION, timestamp=_PHRASE),
        _variant(_GET, "GetKeyCcl", key=_SCALAR, criteria=_SCALAR),
        _variant(_GET, "GetKeyCclTime", key=_SCALAR, criteria=_SCALAR, timestamp=_INSTANT),
        _variant(_GET, "GetKeyCclTimestr", key=_SCALAR, criteria=_SCALAR, timestamp=_PHRASE),
        _variant(_GET, "GetKeyRecord", key=_SCALAR, record=_SCALAR),
        _variant(_GET, "GetKeyRecordTime", key=_SCALAR, record=_SCALAR, timestamp=_INSTANT),
        _variant(_GET, "GetKeyRecordTimestr", key=_SCALAR, record=_SCALAR, timestamp=_PHRASE),
        _variant(_GET, "GetKeyRecords", key=_SCALAR, record=_COLLECTION),
        _variant(_GET, "GetKeyRecordsTime", key=_SCALAR, record=_COLLECTION, timestamp=_INSTANT),
        _variant(_GET, "GetKeyRecordsTimestr", key=_SCALAR, record=_COLLECTION, timestamp=_PHRASE),
        _variant(_GET, "GetKeysCcl", key=_COLLECTION, criteria=_SCALAR),
        _variant(_GET, "GetKeysCclTime", key=_COLLECTION, criteria=_SCALAR, timestamp=_INSTANT),
        _variant(_GET, "GetKeysCclTimestr", key=_COLLECTION, criteria=_SCALAR, timestamp=_PHRASE),
        _variant(_GET, "GetKeysRecord", key=_COLLECTION, record=_SCALAR),
        _variant(_GET, "GetKeysRecordTime", key=_COLLECTION, record=_SCALAR, timestamp=_INSTANT),
        _variant(_GET, "GetKeysRecordTimestr", key=_COLLECTION, record=_SCALAR, timestamp=_PHRASE),
        _variant(_GET, "GetKeysRecords", key=_COLLECTION, record=_COLLECTION),
        _variant(_GET, "GetKeysRecordsTime", key=_COLLECTION, record=_COLLECTION, timestamp=_INSTANT),
        _variant(_GET, "GetKeysRecordsTimestr", key=_COLLECTION, record=_COLLECTION, timestamp=_PHRASE),
        # select
        _variant(_SELECT, "SelectCcl", criteria=_SCALAR),
        _variant(_SELECT, "SelectCclTime", criteria=_SCALAR, timestamp=_INSTANT),
        _variant(_SELECT, "SelectCclTimestr", criteria=_SCALAR, timestamp=_PHRASE),
        _variant(_SELECT, "SelectRecord", record=_SCALAR),
        _variant(_SELECT, "SelectRecordTime", record=_SCALAR, timestamp=_INSTANT),
        _variant(_SELECT, "SelectRecordTimestr", record=_SCALAR, timestamp=_PHRASE),
        _variant(_SELECT, "SelectRecords", record=_COLLECTION),
        _variant(_SELECT, "SelectRecordsTime", record=_COLLECTION, timestamp=_INSTANT),
        _variant(_SELECT, "SelectRecordsTimestr", record=_COLLECTION, timestamp=_PHRASE),
        _variant(_SELECT, "SelectKeyCcl", key=_SCALAR, criteria=_SCALAR),
        _variant(_SELECT, "SelectKeyCclTime", key=_SCALAR, criteria=_SCALAR, timestamp=_INSTANT),
        _variant(_SELECT, "SelectKeyCclTimestr", key=_SCALAR, criteria=_SCALAR, timestamp=_PHRASE),
        _variant(_SELECT, "SelectKeyRecord", key=_SCALAR, record=_SCALAR),
        _variant(_SELECT, "SelectKeyRecordTime", key=_SCALAR, record=_SCALAR, timestamp=_INSTANT),
        _variant(_SELECT, "SelectKeyRecordTimestr", key=_SCALAR, record=_SCALAR, timestamp=_PHRASE),
        _variant(_SELECT, "SelectKeyRecords", key=_SCALAR, record=_COLLECTION),
        _variant(_SELECT, "SelectKeyRecordsTime", key=_SCALAR, record=_COLLECTION, timestamp=_INSTANT),
        _variant(_SELECT, "SelectKeyRecordsTimestr", key=_SCALAR, record=_COLLECTION, timestamp=_PHRASE),
        _variant(_SELECT, "SelectKeysCcl", key=_COLLECTION, criteria=_SCALAR),
        _variant(_SELECT, "SelectKeysCclTime", key=_COLLECTION, criteria=_SCALAR, timestamp=_INSTANT),
        _variant(_SELECT, "SelectKeysCclTimestr", key=_COLLECTION, criteria=_SCALAR, timestamp=_PHRASE),
        _variant(_SELECT, "SelectKeysRecord", key=_COLLECTION, record=_SCALAR),
        _variant(_SELECT, "SelectKeysRecordTime", key=_COLLECTION, record=_SCALAR, timestamp=_INSTANT),
        _variant(_SELECT, "SelectKeysRecordTimestr", key=_COLLECTION, record=_SCALAR, timestamp=_PHRASE),
        _variant(_SELECT, "SelectKeysRecords", key=_COLLECTION, record=_COLLECTION),
        _variant(_SELECT, "SelectKeysRecordsTime", key=_COLLECTION, record=_COLLECTION, timestamp=_INSTANT),
        _variant(_SELECT, "SelectKeysRecordsTimestr", key=_COLLECTION, record=_COLLECTION, timestamp=_PHRASE),
        # audit
        _variant(_AUDIT, "AuditRecord", record=_SCALAR),
        _variant(_AUDIT, "AuditRecordStart", record=_SCALAR, start=_INSTANT),
        _variant(_AUDIT, "AuditRecordStartstr", record=_SCALAR, start=_PHRASE),
        _variant(_AUDIT, "AuditRecordStartEnd", record=_SCALAR, start=_INSTANT, end=_INSTANT),
        _variant(_AUDIT, "AuditRecordStartstrEndstr", record=_SCALAR, start=_PHRASE, end=_PHRASE),
        _variant(_AUDIT, "AuditKeyRecord", key=_SCALAR, record=_SCALAR),
        _variant(_AUDIT, "AuditKeyRecordStart", key=_SCALAR, record=_SCALAR, start=_INSTANT),
        _variant(_AUDIT, "AuditKeyRecordStartstr", key=_SCALAR, record=_SCALAR, start=_PHRASE),
        _variant(_AUDIT, "AuditKeyRecordStartEnd", key=_SCALAR, record=_SCALAR, start=_INSTANT, end=_INSTANT),
        _variant(_AUDIT, "AuditKeyRecordStartstrEndstr", key=_SCALAR, record=_SCALAR, start=_PHRASE, end=_PHRASE),
        # time
        _variant(Operation.TIME, "Time"),
        _variant(Operation.TIME, "TimePhrase", timestamp=_PHRASE),
        # session
        _variant(Operation.SERVER_ENVIRONMENT, "GetServerEnvironment"),
        _variant(Operation.SERVER_VERSION, "GetServerVersion"),
    ]
)
