"""
Tests for merging extraction results into a session.
"""
import pytest

from intake_bot.engine import merge_extraction


@pytest.mark.unit
def test_new_values_are_recorded(new_session, ab_schema):
    session = new_session()

    changes = merge_extraction(session, {"a": "v1"}, ab_schema)

    assert session.collected_fields == {"a": "v1"}
    assert len(changes) == 1
    assert changes[0].key == "a"
    assert changes[0].label == "A"
    assert not changes[0].is_update


@pytest.mark.unit
def test_changed_values_are_updates(new_session, ab_schema):
    session = new_session()
    session.set_field("a", "v1")

    changes = merge_extraction(session, {"a": "v2"}, ab_schema)

    assert session.collected_fields["a"] == "v2"
    assert changes[0].is_update
    assert changes[0].previous == "v1"


@pytest.mark.unit
def test_merge_is_idempotent(new_session, ab_schema):
    session = new_session()
    extraction = {"a": "v1", "b": "x"}

    merge_extraction(session, extraction, ab_schema)
    after_once = dict(session.collected_fields)
    second = merge_extraction(session, extraction, ab_schema)

    assert session.collected_fields == after_once
    assert second == []


@pytest.mark.unit
def test_empty_values_never_erase(new_session, ab_schema):
    session = new_session()
    session.set_field("a", "v1")

    changes = merge_extraction(session, {"a": "", "b": "   "}, ab_schema)

    assert session.collected_fields == {"a": "v1"}
    assert changes == []


@pytest.mark.unit
@pytest.mark.parametrize("placeholder", ["N/A", "unknown", "None", "null", "未提供", "无", "未知"])
def test_placeholders_are_dropped(new_session, ab_schema, placeholder):
    session = new_session()
    session.set_field("a", "v1")

    merge_extraction(session, {"a": placeholder, "b": placeholder}, ab_schema)

    assert session.collected_fields == {"a": "v1"}


@pytest.mark.unit
def test_keys_outside_schema_ignored(new_session, ab_schema):
    session = new_session()

    merge_extraction(session, {"rogue": "x", "a": "v1"}, ab_schema)

    assert session.collected_fields == {"a": "v1"}


@pytest.mark.unit
def test_changes_follow_schema_order(new_session, ab_schema):
    session = new_session()

    changes = merge_extraction(session, {"note": "n", "b": "x", "a": "y"}, ab_schema)

    assert [c.key for c in changes] == ["a", "b", "note"]


@pytest.mark.unit
def test_compares_against_snapshot(new_session, ab_schema):
    session = new_session()
    session.set_field("a", "v1")
    snapshot = {"a": "v0"}

    changes = merge_extraction(session, {"a": "v1"}, ab_schema, snapshot)

    # v1 differs from the snapshot, so it is reported as an update
    assert changes[0].previous == "v0"
    assert session.collected_fields["a"] == "v1"


@pytest.mark.unit
def test_completion_monotonic_under_merges(new_session, ab_schema):
    session = new_session()
    merge_extraction(session, {"a": "1", "b": "2"}, ab_schema)
    assert session.is_complete(ab_schema)

    for extraction in ({}, {"a": ""}, {"b": "n/a"}, {"a": "3"}, {"note": "x"}):
        merge_extraction(session, extraction, ab_schema)
        assert session.is_complete(ab_schema)
