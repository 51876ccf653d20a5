"""
Unit tests for argument-shape resolution.

Tests cover:
- Shape classification of keys, records, criteria and timestamps
- Positional binding and keyword aliases
- Bare integer disambiguation
- Exclusivity and minimality errors
"""

from datetime import datetime, timezone

import pytest

from concourse_sdk.arguments import (
    CallArguments,
    Instant,
    Operation,
    Phrase,
    Shape,
    ShapeTag,
    resolve,
)
from concourse_sdk.errors import (
    AmbiguousArguments,
    ArgumentError,
    InvalidArguments,
    MissingRequiredArguments,
)


def call(operation: Operation, *args, **kwargs):
    """Helper to resolve a call in one step."""
    return resolve(CallArguments.of(operation, *args, **kwargs))


class TestShapeTag:
    """Tests for ShapeTag rendering."""

    def test_plural_names_for_collections(self):
        """Collections of keys and records render with plural names."""
        tag = ShapeTag(key=Shape.COLLECTION, record=Shape.COLLECTION, timestamp=Shape.INSTANT)
        assert str(tag) == "keys=collection, records=collection, timestamp=absoluteInstant"

    def test_empty_tag(self):
        """A tag with no slots says so."""
        assert str(ShapeTag()) == "no arguments"

    def test_present_follows_slot_order(self):
        """present() lists slots in canonical order."""
        tag = ShapeTag(end=Shape.INSTANT, key=Shape.SCALAR, record=Shape.SCALAR, start=Shape.INSTANT)
        assert tag.present() == ("key", "record", "start", "end")


class TestReadResolution:
    """Tests for get/select resolution."""

    def test_key_and_record(self):
        """Scalar key and record."""
        resolved = call(Operation.GET, key="name", record=1)

        assert resolved.tag == ShapeTag(key=Shape.SCALAR, record=Shape.SCALAR)
        assert str(resolved.tag) == "key=scalar, record=scalar"
        assert resolved.values == {"key": "name", "record": 1}

    def test_keys_records_and_instant(self):
        """Collections with a numeric timestamp."""
        resolved = call(
            Operation.SELECT,
            keys=["name", "age"],
            records=[1, 2, 3],
            timestamp=1609459200000000,
        )

        assert resolved.tag == ShapeTag(
            key=Shape.COLLECTION, record=Shape.COLLECTION, timestamp=Shape.INSTANT
        )
        assert resolved.values["timestamp"] == Instant(1609459200000000)
        assert resolved.values["record"] == [1, 2, 3]

    def test_criteria_and_phrase(self):
        """A string timestamp is a phrase."""
        resolved = call(Operation.GET, criteria="age > 30", timestamp="last month")

        assert str(resolved.tag) == "criteria=scalar, timestamp=phrase"
        assert resolved.values["timestamp"] == Phrase("last month")

    def test_positional_arguments(self):
        """Positional order is keys, criteria, records, timestamp."""
        resolved = call(Operation.GET, ["name", "age"], None, [1, 2], "yesterday")

        assert resolved.tag == ShapeTag(
            key=Shape.COLLECTION, record=Shape.COLLECTION, timestamp=Shape.PHRASE
        )

    def test_integer_criteria_is_a_record(self):
        """A bare integer in the criteria position is a record id."""
        resolved = call(Operation.GET, "name", 1)

        assert resolved.tag == ShapeTag(key=Shape.SCALAR, record=Shape.SCALAR)
        assert resolved.values["record"] == 1
        assert "criteria" not in resolved.values

    def test_non_integer_criteria_is_text(self):
        """A float in the criteria position is criteria text."""
        resolved = call(Operation.SELECT, criteria=1.5)

        assert resolved.tag == ShapeTag(criteria=Shape.SCALAR)
        assert resolved.values["criteria"] == "1.5"

    def test_integer_criteria_with_record_is_ambiguous(self):
        """An integer criteria plus an explicit record is ambiguous."""
        with pytest.raises(AmbiguousArguments):
            call(Operation.GET, "name", 1, record=2)

    @pytest.mark.parametrize("alias", ["ccl", "where", "query"])
    def test_criteria_aliases(self, alias):
        """Criteria may be given under its aliases."""
        resolved = call(Operation.SELECT, **{alias: "age > 30"})
        assert resolved.values["criteria"] == "age > 30"

    @pytest.mark.parametrize("alias", ["time", "ts"])
    def test_timestamp_aliases(self, alias):
        """Timestamp may be given under its aliases."""
        resolved = call(Operation.GET, record=1, **{alias: 42})
        assert resolved.values["timestamp"] == Instant(42)

    def test_key_given_as_list_is_a_collection(self):
        """The singular spelling may still carry a collection."""
        resolved = call(Operation.GET, key=["a", "b"], record=1)
        assert resolved.tag.key is Shape.COLLECTION

    def test_datetime_timestamp(self):
        """A datetime becomes microseconds since the epoch."""
        moment = datetime(2021, 1, 1, tzinfo=timezone.utc)
        resolved = call(Operation.GET, record=1, timestamp=moment)
        assert resolved.values["timestamp"] == Instant(1609459200000000)

    def test_none_keyword_is_absent(self):
        """A keyword explicitly set to None counts as absent."""
        resolved = call(Operation.GET, key=None, record=1, timestamp=None)
        assert resolved.tag == ShapeTag(record=Shape.SCALAR)

    def test_ordered_values(self):
        """ordered() returns values in the requested order."""
        resolved = call(Operation.GET, key="name", record=1, timestamp="now")
        assert resolved.ordered(("key", "record", "timestamp")) == ["name", 1, Phrase("now")]


class TestExclusivity:
    """Tests for mutually exclusive parameters."""

    @pytest.mark.parametrize("operation", [Operation.GET, Operation.SELECT])
    def test_record_and_records(self, operation):
        """record and records together are ambiguous."""
        with pytest.raises(AmbiguousArguments) as exc_info:
            call(operation, key="name", record=1, records=[1, 2])
        assert exc_info.value.parameters == ["record", "records"]

    @pytest.mark.parametrize("operation", [Operation.GET, Operation.SELECT])
    def test_key_and_keys(self, operation):
        """key and keys together are ambiguous."""
        with pytest.raises(AmbiguousArguments):
            call(operation, key="name", keys=["name"], record=1)

    def test_set_with_record_and_records(self):
        """Write operations reject record and records together."""
        with pytest.raises(AmbiguousArguments):
            call(Operation.SET, key="name", value="Jeff", record=1, records=[1, 2])

    def test_positional_and_keyword_for_same_slot(self):
        """A slot bound positionally and by keyword is ambiguous."""
        with pytest.raises(AmbiguousArguments):
            call(Operation.ADD, "name", "Jeff", key="other")

    def test_criteria_and_record(self):
        """A read selects by criteria or by record, not both."""
        with pytest.raises(AmbiguousArguments) as exc_info:
            call(Operation.SELECT, criteria="age > 30", record=1)
        assert exc_info.value.code == "AMBIGUOUS_ARGUMENTS"

    def test_criteria_alias_and_criteria(self):
        """Two spellings of criteria are ambiguous."""
        with pytest.raises(AmbiguousArguments):
            call(Operation.GET, criteria="a = 1", ccl="b = 2")


class TestMinimality:
    """Tests for missing required arguments."""

    def test_select_without_selector(self):
        """select() with nothing names the requirement."""
        with pytest.raises(MissingRequiredArguments) as exc_info:
            call(Operation.SELECT)
        assert exc_info.value.requirement == "criteria or record"
        assert "criteria or record" in str(exc_info.value)

    @pytest.mark.parametrize("operation", [Operation.GET, Operation.SELECT])
    def test_keys_and_timestamp_only(self, operation):
        """Keys and a timestamp do not select any records."""
        with pytest.raises(MissingRequiredArguments):
            call(operation, keys=["name"], timestamp="yesterday")

    def test_audit_without_record(self):
        """audit() needs a record."""
        with pytest.raises(MissingRequiredArguments) as exc_info:
            call(Operation.AUDIT, key="name")
        assert exc_info.value.requirement == "record"

    @pytest.mark.parametrize("operation", [Operation.ADD, Operation.SET])
    def test_write_without_value(self, operation):
        """Writes need a key and a value."""
        with pytest.raises(MissingRequiredArguments) as exc_info:
            call(operation, key="name", record=1)
        assert exc_info.value.requirement == "key and value"

    def test_missing_is_an_argument_error(self):
        """Caller errors share a base class."""
        with pytest.raises(ArgumentError):
            call(Operation.GET)


class TestAuditResolution:
    """Tests for audit() argument handling."""

    def test_key_and_record(self):
        resolved = call(Operation.AUDIT, "name", 1)
        assert resolved.tag == ShapeTag(key=Shape.SCALAR, record=Shape.SCALAR)

    def test_leading_integer_is_the_record(self):
        """audit(record, start, end) shifts positional arguments left."""
        resolved = call(Operation.AUDIT, 1, 100, 200)

        assert resolved.tag == ShapeTag(
            record=Shape.SCALAR, start=Shape.INSTANT, end=Shape.INSTANT
        )
        assert resolved.values == {"record": 1, "start": Instant(100), "end": Instant(200)}

    def test_integer_key_keyword_is_the_record(self):
        resolved = call(Operation.AUDIT, key=7)
        assert resolved.values == {"record": 7}

    def test_timestamp_is_start(self):
        """timestamp is accepted as an alias for start."""
        resolved = call(Operation.AUDIT, record=1, timestamp="last week")
        assert resolved.tag == ShapeTag(record=Shape.SCALAR, start=Shape.PHRASE)

    def test_end_without_start(self):
        with pytest.raises(MissingRequiredArguments) as exc_info:
            call(Operation.AUDIT, record=1, end=200)
        assert exc_info.value.requirement == "start"

    def test_mixed_range(self):
        """start and end must be the same kind of timestamp."""
        with pytest.raises(InvalidArguments):
            call(Operation.AUDIT, record=1, start=100, end="yesterday")

    def test_record_collection_rejected(self):
        with pytest.raises(InvalidArguments):
            call(Operation.AUDIT, records=[1, 2])


class TestInvalidArguments:
    """Tests for values of the wrong kind."""

    def test_bool_record(self):
        with pytest.raises(InvalidArguments):
            call(Operation.GET, record=True)

    def test_mixed_collection(self):
        with pytest.raises(InvalidArguments) as exc_info:
            call(Operation.GET, records=[1, "2"])
        assert exc_info.value.parameter == "records"

    def test_empty_collection(self):
        with pytest.raises(InvalidArguments):
            call(Operation.SELECT, keys=[], record=1)

    def test_nested_collection(self):
        with pytest.raises(InvalidArguments):
            call(Operation.SELECT, records=[[1, 2]])

    def test_collection_value(self):
        with pytest.raises(InvalidArguments):
            call(Operation.ADD, key="tags", value=["a", "b"])

    def test_blank_criteria(self):
        with pytest.raises(InvalidArguments):
            call(Operation.SELECT, criteria="   ")

    def test_bool_timestamp(self):
        with pytest.raises(InvalidArguments):
            call(Operation.GET, record=1, timestamp=False)

    @pytest.mark.parametrize("moment", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_timestamp(self, moment):
        with pytest.raises(InvalidArguments) as exc_info:
            call(Operation.GET, key="name", record=1, timestamp=moment)
        assert exc_info.value.parameter == "timestamp"
        assert "finite" in exc_info.value.reason

    def test_non_finite_audit_start(self):
        with pytest.raises(InvalidArguments):
            call(Operation.AUDIT, 1, float("inf"))

    def test_unaccepted_parameter(self):
        """Parameters the operation does not take are rejected."""
        with pytest.raises(InvalidArguments) as exc_info:
            call(Operation.ADD, key="name", value="Jeff", criteria="age > 30")
        assert exc_info.value.parameter == "criteria"

    def test_too_many_positional(self):
        with pytest.raises(InvalidArguments):
            CallArguments.of(Operation.SET, "name", "Jeff", 1, 2)

    def test_time_rejects_numbers(self):
        """time() only takes a phrase."""
        with pytest.raises(InvalidArguments):
            call(Operation.TIME, 12345)


class TestDeterminism:
    """Resolution is a pure function of its input."""

    def test_same_input_same_result(self):
        first = call(Operation.SELECT, ["a", "b"], "x > 1", None, "last year")
        second = call(Operation.SELECT, ["a", "b"], "x > 1", None, "last year")
        assert first == second
