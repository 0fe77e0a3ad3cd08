"""Tests for llm_schema.schema.transform -- diff, merge, search and extraction."""

from datetime import datetime, timezone

import pytest

from llm_schema.schema import (
    DiffChange,
    array,
    boolean,
    date,
    define_schema,
    entity,
    enum_type,
    md,
    number,
    object_field,
    text,
    validate_schema_data,
)
from llm_schema.schema.transform import build_excerpt, deep_equal


def _priority_schema():
    return define_schema({"priority": enum_type(["high", "medium", "low"])})


def _sample_notes() -> dict:
    return {
        "title": "Sprint Review",
        "summary": "We agreed the **budget** is fine.",
        "actionItems": [
            {"task": "Draft notes", "owner": "alice", "completed": False},
            {"task": "Email summary", "owner": "bob", "completed": False},
        ],
        "priority": "medium",
        "venue": {"room": "4B", "host": "carol", "notes": "Bring the budget sheet"},
    }


# --- deep_equal ---


class TestDeepEqual:
    def test_nested_structures(self):
        assert deep_equal({"a": [1, {"b": "c"}]}, {"a": [1, {"b": "c"}]}) is True
        assert deep_equal({"a": [1]}, {"a": [2]}) is False

    def test_key_sets_must_match(self):
        assert deep_equal({"a": 1}, {"a": 1, "b": 2}) is False
        assert deep_equal({"a": 1, "b": 2}, {"a": 1, "c": 2}) is False

    def test_bool_never_equals_number(self):
        assert deep_equal(True, 1) is False
        assert deep_equal(0, False) is False

    def test_datetimes_compare_by_instant(self):
        utc = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)
        same = datetime.fromisoformat("2024-01-01T13:00:00+01:00")
        assert deep_equal(utc, same) is True

    def test_container_vs_scalar(self):
        assert deep_equal([1], 1) is False
        assert deep_equal({}, []) is False


# --- Diff ---


class TestDiff:
    def test_enum_change_scenario(self):
        diff = _priority_schema().diff({"priority": "medium"}, {"priority": "high"})
        assert diff.changed == [DiffChange(path="priority", before="medium", after="high")]
        assert diff.added == []
        assert diff.removed == []

    def test_identical_data_is_empty(self, meeting_notes_schema):
        data = _sample_notes()
        diff = meeting_notes_schema.diff(data, data)
        assert diff.is_empty is True

    def test_added_and_removed_fields(self, meeting_notes_schema):
        before = {"title": "A", "summary": "old"}
        after = {"title": "A", "durationMinutes": 30}
        diff = meeting_notes_schema.diff(before, after)
        assert diff.added == [DiffChange(path="durationMinutes", after=30)]
        assert diff.removed == [DiffChange(path="summary", before="old")]
        assert diff.changed == []

    def test_array_items_compared_by_index(self, meeting_notes_schema):
        before = meeting_notes_schema.parse(
            {
                "title": "Sprint Review",
                "actionItems": [{"task": "Draft notes", "owner": "alice"}],
                "priority": "medium",
            }
        )
        after = meeting_notes_schema.parse(
            {
                "title": "Sprint Review v2",
                "actionItems": [
                    {"task": "Draft notes", "owner": "alice", "completed": True},
                    {"task": "Email summary", "owner": "bob"},
                ],
                "priority": "high",
            }
        )
        diff = meeting_notes_schema.diff(before, after)
        assert [c.path for c in diff.changed] == ["title", "actionItems.0", "priority"]
        assert [c.path for c in diff.added] == ["actionItems.1"]
        assert diff.added[0].after["owner"] == "bob"

    def test_array_shrink_reports_removed_index(self, meeting_notes_schema):
        before = {"actionItems": [{"task": "a"}, {"task": "b"}]}
        after = {"actionItems": [{"task": "a"}]}
        diff = meeting_notes_schema.diff(before, after)
        assert diff.removed == [DiffChange(path="actionItems.1", before={"task": "b"})]

    def test_reorder_is_reported_as_changes(self, meeting_notes_schema):
        first, second = {"task": "a"}, {"task": "b"}
        diff = meeting_notes_schema.diff(
            {"actionItems": [first, second]}, {"actionItems": [second, first]}
        )
        assert [c.path for c in diff.changed] == ["actionItems.0", "actionItems.1"]

    def test_object_fields_recurse(self, meeting_notes_schema):
        before = {"venue": {"room": "4B", "host": "carol"}}
        after = {"venue": {"room": "5A"}}
        diff = meeting_notes_schema.diff(before, after)
        assert diff.changed == [DiffChange(path="venue.room", before="4B", after="5A")]
        assert diff.removed == [DiffChange(path="venue.host", before="carol")]

    def test_dates_compared_by_timestamp(self):
        schema = define_schema({"at": date()})
        before = schema.parse({"at": "2024-01-01T12:00:00Z"})
        after = schema.parse({"at": "2024-01-01T13:00:00+01:00"})
        assert schema.diff(before, after).is_empty is True

    def test_boolean_change(self):
        schema = define_schema({"done": boolean()})
        diff = schema.diff({"done": False}, {"done": True})
        assert diff.changed == [DiffChange(path="done", before=False, after=True)]

    def test_malformed_array_treated_as_empty(self, meeting_notes_schema):
        diff = meeting_notes_schema.diff({"actionItems": "oops"}, {"actionItems": [{"task": "a"}]})
        assert [c.path for c in diff.added] == ["actionItems.0"]


# --- Merge ---


class TestMerge:
    def test_empty_update_is_identity(self, meeting_notes_schema):
        base = _sample_notes()
        assert meeting_notes_schema.merge(base, {}) == base

    def test_scalar_update_wins(self, meeting_notes_schema):
        merged = meeting_notes_schema.merge(_sample_notes(), {"priority": "high"})
        assert merged["priority"] == "high"
        assert merged["title"] == "Sprint Review"

    def test_base_not_mutated(self, meeting_notes_schema):
        base = _sample_notes()
        meeting_notes_schema.merge(base, {"priority": "high", "venue": {"room": "1A"}})
        assert base == _sample_notes()

    def test_array_replaced_by_default(self, meeting_notes_schema):
        update = [{"task": "Only", "owner": "erin", "completed": True}]
        merged = meeting_notes_schema.merge(_sample_notes(), {"actionItems": update})
        assert merged["actionItems"] == update

    def test_array_append_strategy(self, meeting_notes_schema):
        extra = {"task": "Follow up", "owner": "dana", "completed": False}
        merged = meeting_notes_schema.merge(
            _sample_notes(), {"actionItems": [extra]}, array_strategy="append"
        )
        assert [item["task"] for item in merged["actionItems"]] == [
            "Draft notes",
            "Email summary",
            "Follow up",
        ]

    def test_array_update_over_missing_base(self, meeting_notes_schema):
        merged = meeting_notes_schema.merge(
            {"title": "A"}, {"actionItems": [{"task": "x"}]}, array_strategy="append"
        )
        assert merged["actionItems"] == [{"task": "x"}]

    def test_object_merged_key_by_key(self, meeting_notes_schema):
        merged = meeting_notes_schema.merge(_sample_notes(), {"venue": {"room": "1A"}})
        assert merged["venue"] == {"room": "1A", "host": "carol", "notes": "Bring the budget sheet"}

    def test_non_mapping_object_update_keeps_base(self, meeting_notes_schema):
        merged = meeting_notes_schema.merge(_sample_notes(), {"venue": "elsewhere"})
        assert merged["venue"]["room"] == "4B"

    def test_absent_keys_not_introduced(self, meeting_notes_schema):
        merged = meeting_notes_schema.merge({"title": "A"}, {"summary": None})
        assert merged == {"title": "A"}

    def test_base_keys_outside_schema_kept(self, meeting_notes_schema):
        merged = meeting_notes_schema.merge({"title": "A", "extra": 1}, {"title": "B"})
        assert merged == {"title": "B", "extra": 1}

    def test_unknown_strategy_rejected(self, meeting_notes_schema):
        with pytest.raises(ValueError, match="array strategy"):
            meeting_notes_schema.merge({}, {}, array_strategy="interleave")

    def test_merged_data_revalidates(self, meeting_notes_schema):
        base = meeting_notes_schema.parse(_sample_notes())
        merged = meeting_notes_schema.merge(base, {"priority": "urgent"})
        result = validate_schema_data(meeting_notes_schema, merged)
        assert result.success is False
        assert result.issues[0].path == ["priority"]


# --- Search ---


class TestSearch:
    def test_summary_scenario(self):
        schema = define_schema({"summary": text()})
        results = schema.search({"summary": "Discuss budget plan"}, "budget")
        assert len(results) == 1
        assert results[0].path == "summary"
        assert "budget" in results[0].excerpt
        assert results[0].value == "Discuss budget plan"

    def test_case_insensitive_by_default(self, meeting_notes_schema):
        results = meeting_notes_schema.search(_sample_notes(), "EMAIL")
        assert [r.path for r in results] == ["actionItems.1.task"]

    def test_case_sensitive(self, meeting_notes_schema):
        assert meeting_notes_schema.search(_sample_notes(), "EMAIL", case_sensitive=True) == []

    def test_recurses_into_arrays_objects_and_markdown(self, meeting_notes_schema):
        results = meeting_notes_schema.search(_sample_notes(), "budget")
        assert [r.path for r in results] == ["summary", "venue.notes"]

    def test_markdown_can_be_skipped(self, meeting_notes_schema):
        results = meeting_notes_schema.search(_sample_notes(), "budget", match_markdown=False)
        assert results == []

    def test_enum_and_entity_values_searched(self, meeting_notes_schema):
        assert [r.path for r in meeting_notes_schema.search(_sample_notes(), "medium")] == [
            "priority"
        ]
        assert [r.path for r in meeting_notes_schema.search(_sample_notes(), "alice")] == [
            "actionItems.0.owner"
        ]

    def test_non_text_kinds_ignored(self):
        schema = define_schema({"count": number(), "flag": boolean()})
        assert schema.search({"count": 12, "flag": True}, "1") == []

    def test_blank_query(self, meeting_notes_schema):
        assert meeting_notes_schema.search(_sample_notes(), "   ") == []

    def test_limit(self, meeting_notes_schema):
        results = meeting_notes_schema.search(_sample_notes(), "e", limit=2)
        assert len(results) == 2
        assert results[0].path == "title"

    def test_malformed_items_skipped(self, meeting_notes_schema):
        data = {"actionItems": ["not an object", {"task": "budget review"}]}
        results = meeting_notes_schema.search(data, "budget")
        assert [r.path for r in results] == ["actionItems.1.task"]


class TestBuildExcerpt:
    def test_short_value_not_ellipsized(self):
        assert build_excerpt("Discuss budget plan", "budget") == "Discuss budget plan"

    def test_long_value_windowed(self):
        value = "x" * 50 + "needle" + "y" * 50
        excerpt = build_excerpt(value, "needle")
        assert excerpt == "…" + "x" * 30 + "needle" + "y" * 30 + "…"

    def test_match_at_start(self):
        value = "needle" + "y" * 50
        assert build_excerpt(value, "needle") == "needle" + "y" * 30 + "…"

    def test_context_width_from_config(self, monkeypatch):
        from llm_schema.config import reset_config

        monkeypatch.setenv("LLM_SCHEMA_EXCERPT_CONTEXT", "2")
        reset_config()
        assert build_excerpt("abcdefNEEDLEghijk", "needle") == "…efNEEDLEgh…"


# --- Entities and markdown ---


class TestExtraction:
    def test_entities_in_document_order(self, meeting_notes_schema):
        records = meeting_notes_schema.get_entities(_sample_notes())
        assert [(r.path, r.type, r.value) for r in records] == [
            ("actionItems.0.owner", "person", "alice"),
            ("actionItems.1.owner", "person", "bob"),
            ("venue.host", "person", "carol"),
        ]

    def test_entity_type_filter(self):
        schema = define_schema(
            {
                "owner": entity("person"),
                "project": entity("project"),
                "reviewers": array(schema={"who": entity("person")}),
            }
        )
        data = {"owner": "ann", "project": "apollo", "reviewers": [{"who": "ben"}]}
        assert [r.value for r in schema.get_entities(data, "person")] == ["ann", "ben"]
        assert [r.value for r in schema.get_entities(data, "project")] == ["apollo"]
        assert schema.get_entities(data, "team") == []

    def test_markdown_fields(self, meeting_notes_schema):
        records = meeting_notes_schema.get_markdown_fields(_sample_notes())
        assert [r.path for r in records] == ["summary", "venue.notes"]
        assert records[0].field.kind == "markdown"
        assert records[0].field is meeting_notes_schema.get_definition()["summary"]

    def test_missing_values_skipped(self, meeting_notes_schema):
        assert meeting_notes_schema.get_markdown_fields({"title": "A"}) == []
        assert meeting_notes_schema.get_entities({"actionItems": None}) == []

    def test_nested_object_in_array(self):
        schema = define_schema(
            {
                "sections": array(
                    schema={
                        "body": md(),
                        "meta": object_field(schema={"author": entity("person")}),
                    }
                )
            }
        )
        data = {"sections": [{"body": "# One", "meta": {"author": "zoe"}}]}
        assert [r.path for r in schema.get_markdown_fields(data)] == ["sections.0.body"]
        assert [r.path for r in schema.get_entities(data)] == ["sections.0.meta.author"]
