"""Tests for declarative request assembly."""

import pytest

from connectors.base import RequestContext
from connectors.errors import ValidationError
from connectors.mapping import (
    QUERY,
    FieldMapping,
    apply_mappings,
    is_blank,
    join_comma,
    key_value_pairs,
    parse_json_parameter,
    passthrough,
    split_comma,
    wrap_each,
)


class TestApplyMappings:
    """Tests for apply_mappings."""

    def test_dotted_targets_build_nested_objects(self):
        body, query = apply_mappings(
            (FieldMapping("priority", "priority.id"), FieldMapping("issueType", "issuetype.id")),
            {"priority": "3", "issueType": "10001"},
        )
        assert body == {"priority": {"id": "3"}, "issuetype": {"id": "10001"}}
        assert query == {}

    def test_absent_and_blank_values_never_sent(self):
        mappings = passthrough(("summary", "description", "labels"))
        body, _ = apply_mappings(mappings, {"summary": "New title", "description": "", "labels": []})
        assert body == {"summary": "New title"}
        assert None not in body.values()

    def test_query_location(self):
        body, query = apply_mappings((FieldMapping("updateHistory", "updateHistory", QUERY),), {"updateHistory": True})
        assert body == {}
        assert query == {"updateHistory": True}

    def test_transform_applied(self):
        body, _ = apply_mappings(
            (FieldMapping("componentIds", "components", transform=wrap_each("id")),),
            {"componentIds": ["1", "2"]},
        )
        assert body == {"components": [{"id": "1"}, {"id": "2"}]}

    def test_existing_body_extended(self):
        body = {"link": "https://example.com"}
        result, _ = apply_mappings(passthrough(("title",)), {"title": "Example"}, body)
        assert result is body
        assert body == {"link": "https://example.com", "title": "Example"}

    def test_keep_falsy(self):
        body, _ = apply_mappings(passthrough(("important", "order"), keep_falsy=True), {"important": False, "order": 0})
        assert body == {"important": False, "order": 0}

    def test_falsy_scalars_skipped_by_default(self):
        body, _ = apply_mappings(passthrough(("important",)), {"important": False})
        assert body == {}


class TestHelpers:
    """Tests for transforms and parsing helpers."""

    def test_is_blank(self):
        assert is_blank(None)
        assert is_blank("")
        assert is_blank([])
        assert is_blank({})
        assert is_blank(0)
        assert not is_blank(0, keep_falsy=True)
        assert not is_blank("x")

    def test_split_comma(self):
        assert split_comma("a, b,,c ") == ["a", "b", "c"]
        assert split_comma(["a"]) == ["a"]

    def test_join_comma(self):
        assert join_comma(["groups", "applicationRoles"]) == "groups,applicationRoles"
        assert join_comma("groups") == "groups"

    def test_key_value_pairs_skips_empty_keys(self):
        rows = [{"fieldId": "title", "fieldValue": "Dune"}, {"fieldId": "", "fieldValue": "x"}]
        assert key_value_pairs(rows, "fieldId", "fieldValue") == {"title": "Dune"}

    def test_parse_json_parameter_valid(self):
        assert parse_json_parameter('{"a": [1, 2]}') == {"a": [1, 2]}

    def test_parse_json_parameter_passes_structures_through(self):
        value = {"type": "doc"}
        assert parse_json_parameter(value) is value

    def test_parse_json_parameter_invalid(self):
        with pytest.raises(ValidationError, match="Body must be a valid JSON"):
            parse_json_parameter("{not json", "Body must be a valid JSON")


class TestRequestContextApply:
    """Tests for mapping into a record's running body and query."""

    def test_successive_tables_accumulate(self):
        ctx = RequestContext(credentials=None, resource="user", operation="get", params={})
        ctx.query["accountId"] = "abc"

        ctx.apply(passthrough(["expand"], location=QUERY), {"expand": "groups"})
        body, query = ctx.apply((FieldMapping("name", "name"),), {"name": "ada", "ignored": "x"})

        assert query is ctx.query
        assert body is ctx.body
        assert query == {"accountId": "abc", "expand": "groups"}
        assert body == {"name": "ada"}

    def test_missing_values_leave_maps_untouched(self):
        ctx = RequestContext(credentials=None, resource="issue", operation="get", params={})

        assert ctx.apply(passthrough(["fields"], location=QUERY), None) == ({}, {})
