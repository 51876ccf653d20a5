"""
Unit tests for the operation dispatch table.

Tests cover:
- Lookup of known variants and their parameter order
- UnsupportedShape for unregistered shapes
- Table construction rejecting overlaps
- Exhaustiveness: every shape the resolver can produce is registered,
  and every registered shape is reachable
"""

import itertools

import pytest

from concourse_sdk.arguments import (
    SIGNATURES,
    CallArguments,
    Operation,
    Shape,
    ShapeTag,
    resolve,
)
from concourse_sdk.dispatch import DISPATCH_TABLE, DispatchTable, OperationDescriptor
from concourse_sdk.errors import ArgumentError, UnsupportedShape

# One representative value per shape for every slot, plus absent (None).
SAMPLES = {
    "key": [None, "name", ["name", "age"]],
    "value": [None, "Jeff"],
    "criteria": [None, "age > 30", 7],
    "record": [None, 1, [1, 2, 3]],
    "timestamp": [None, 1609459200000000, "last month"],
    "start": [None, 100, "last week"],
    "end": [None, 200, "yesterday"],
}


def argument_combinations(operation: Operation):
    """Yield keyword-argument dicts covering every shape of every accepted slot."""
    slots = sorted(SIGNATURES[operation].allowed)
    for values in itertools.product(*(SAMPLES[slot] for slot in slots)):
        yield {slot: value for slot, value in zip(slots, values) if value is not None}


class TestLookup:
    """Tests for DispatchTable.lookup."""

    def test_get_key_record(self):
        descriptor = DISPATCH_TABLE.lookup(
            Operation.GET, ShapeTag(key=Shape.SCALAR, record=Shape.SCALAR)
        )
        assert descriptor.name == "GetKeyRecord"
        assert descriptor.params == ("key", "record")

    def test_select_keys_records_time(self):
        descriptor = DISPATCH_TABLE.lookup(
            Operation.SELECT,
            ShapeTag(key=Shape.COLLECTION, record=Shape.COLLECTION, timestamp=Shape.INSTANT),
        )
        assert descriptor.name == "SelectKeysRecordsTime"
        assert descriptor.params == ("key", "record", "timestamp")

    def test_get_ccl_timestr(self):
        descriptor = DISPATCH_TABLE.lookup(
            Operation.GET, ShapeTag(criteria=Shape.SCALAR, timestamp=Shape.PHRASE)
        )
        assert descriptor.name == "GetCclTimestr"

    def test_audit_range(self):
        descriptor = DISPATCH_TABLE.lookup(
            Operation.AUDIT,
            ShapeTag(key=Shape.SCALAR, record=Shape.SCALAR, start=Shape.PHRASE, end=Shape.PHRASE),
        )
        assert descriptor.name == "AuditKeyRecordStartstrEndstr"
        assert descriptor.params == ("key", "record", "start", "end")

    def test_add_params_put_value_before_records(self):
        descriptor = DISPATCH_TABLE.lookup(
            Operation.ADD,
            ShapeTag(key=Shape.SCALAR, value=Shape.SCALAR, record=Shape.COLLECTION),
        )
        assert descriptor.name == "AddKeyValueRecords"
        assert descriptor.params == ("key", "value", "record")

    def test_unregistered_shape(self):
        """Unknown shapes raise UnsupportedShape, which is not a caller error."""
        with pytest.raises(UnsupportedShape) as exc_info:
            DISPATCH_TABLE.lookup(Operation.GET, ShapeTag())

        assert not isinstance(exc_info.value, ArgumentError)
        assert exc_info.value.code == "UNSUPPORTED_SHAPE"

    def test_same_shape_different_operation(self):
        """Shapes are scoped by operation."""
        tag = ShapeTag(record=Shape.SCALAR)
        assert DISPATCH_TABLE.lookup(Operation.GET, tag).name == "GetRecord"
        assert DISPATCH_TABLE.lookup(Operation.SELECT, tag).name == "SelectRecord"
        assert DISPATCH_TABLE.lookup(Operation.AUDIT, tag).name == "AuditRecord"


class TestTableConstruction:
    """Tests for DispatchTable building."""

    def test_overlap_rejected(self):
        tag = ShapeTag(record=Shape.SCALAR)
        with pytest.raises(ValueError, match="both serve"):
            DispatchTable(
                [
                    OperationDescriptor(Operation.GET, "GetRecord", tag, ("record",)),
                    OperationDescriptor(Operation.GET, "GetOther", tag, ("record",)),
                ]
            )

    def test_entry_counts(self):
        """Variant counts per family."""
        counts = {
            Operation.ADD: 3,
            Operation.SET: 3,
            Operation.GET: 27,
            Operation.SELECT: 27,
            Operation.AUDIT: 10,
            Operation.TIME: 2,
            Operation.SERVER_ENVIRONMENT: 1,
            Operation.SERVER_VERSION: 1,
        }
        for operation, expected in counts.items():
            assert len(DISPATCH_TABLE.descriptors(operation)) == expected
        assert len(DISPATCH_TABLE) == sum(counts.values())

    def test_names_unique(self):
        names = [descriptor.name for descriptor in DISPATCH_TABLE]
        assert len(names) == len(set(names))

    @pytest.mark.parametrize(
        "name, id_keyed",
        [
            ("GetKeyRecord", False),
            ("GetKeysRecord", False),
            ("GetRecord", False),
            ("GetKeyRecords", True),
            ("SelectCcl", True),
            ("SelectKeysCclTime", True),
            ("AuditRecord", True),
            ("AuditKeyRecordStartEnd", True),
            ("AddKeyValue", False),
            ("AddKeyValueRecords", True),
            ("Time", False),
        ],
    )
    def test_id_keyed_results(self, name, id_keyed):
        """Results mapping record ids or timestamps are flagged."""
        (descriptor,) = [d for d in DISPATCH_TABLE if d.name == name]
        assert descriptor.id_keyed is id_keyed

    def test_params_match_tag(self):
        """Every descriptor takes exactly the slots its tag marks present."""
        for descriptor in DISPATCH_TABLE:
            assert descriptor.params == descriptor.tag.present()


class TestExhaustiveness:
    """Resolver and table agree."""

    @pytest.mark.parametrize("operation", list(Operation))
    def test_every_resolvable_shape_is_registered(self, operation):
        """No valid arguments lead to UnsupportedShape, and no entry is dead."""
        produced = set()
        for kwargs in argument_combinations(operation):
            try:
                resolved = resolve(CallArguments.of(operation, **kwargs))
            except ArgumentError:
                continue
            DISPATCH_TABLE.lookup(operation, resolved.tag)
            produced.add(resolved.tag)

        assert produced == DISPATCH_TABLE.tags(operation)

    def test_every_operation_has_entries(self):
        for operation in Operation:
            assert DISPATCH_TABLE.tags(operation)


class TestDeterminism:
    """Resolving the same arguments twice dispatches identically."""

    @pytest.mark.parametrize("operation", [Operation.GET, Operation.AUDIT, Operation.ADD])
    def test_repeatable(self, operation):
        for kwargs in argument_combinations(operation):
            try:
                first = resolve(CallArguments.of(operation, **kwargs))
            except ArgumentError:
                continue
            second = resolve(CallArguments.of(operation, **kwargs))
            assert first.tag == second.tag
            assert DISPATCH_TABLE.lookup(operation, first.tag) is DISPATCH_TABLE.lookup(
                operation, second.tag
            )
