"""Tests for the field schema tables and parameter resolution."""

import pytest

from connectors import CONNECTORS
from connectors.elasticsearch import DOCUMENT_DESCRIPTORS
from connectors.errors import ValidationError
from connectors.fields import (
    OperationDescriptor,
    boolean,
    collection,
    limit_field,
    multi_options,
    number,
    option,
    options,
    resolve_parameters,
    return_all_field,
    string,
    to_json_schema,
    visible_fields,
    when,
)
from connectors.jira_fields import JIRA_DESCRIPTORS


def descriptor_for(descriptors, resource, operation):
    return next(d for d in descriptors if d.key == (resource, operation))


ES_CREATE = descriptor_for(DOCUMENT_DESCRIPTORS, "document", "create")
ES_GET_ALL = descriptor_for(DOCUMENT_DESCRIPTORS, "document", "getAll")


class TestOperationDescriptor:
    """Tests for descriptor construction."""

    def test_conflicting_field_types_rejected(self):
        with pytest.raises(ValueError, match="declared as both"):
            OperationDescriptor("thing", "get", "Get", (string("id", "ID"), number("id", "ID")))

    def test_same_name_same_type_allowed(self):
        descriptor = OperationDescriptor(
            "thing", "get", "Get",
            (string("name", "Name", show=when(mode="a")), string("name", "Name", show=when(mode="b"))),
        )
        assert descriptor.key == ("thing", "get")

    def test_every_registered_operation_has_a_descriptor_key(self):
        for connector in CONNECTORS.values():
            keys = [d.key for d in connector.descriptors]
            assert len(keys) == len(set(keys)), connector.name


class TestVisibility:
    """Tests for show conditions."""

    def test_discriminator_selects_define_below_group(self):
        names = [spec.name for spec in visible_fields(ES_CREATE, {"dataToSend": "defineBelow"})]
        assert "fieldsUi" in names
        assert "inputsToIgnore" not in names

    def test_discriminator_selects_auto_map_group(self):
        names = [spec.name for spec in visible_fields(ES_CREATE, {"dataToSend": "autoMapInputData"})]
        assert "inputsToIgnore" in names
        assert "fieldsUi" not in names

    def test_limit_hidden_when_returning_all(self):
        names = [spec.name for spec in visible_fields(ES_GET_ALL, {"returnAll": True})]
        assert "limit" not in names

    def test_limit_visible_by_default(self):
        names = [spec.name for spec in visible_fields(ES_GET_ALL, {})]
        assert "limit" in names

    @pytest.mark.parametrize("return_all,limit_collected", [("false", True), ("true", False), ("TRUE", False)])
    def test_string_booleans_agree_with_resolution(self, return_all, limit_collected):
        values = {"indexId": "books", "returnAll": return_all}

        names = [spec.name for spec in visible_fields(ES_GET_ALL, values)]
        resolved = resolve_parameters(ES_GET_ALL, values)

        assert ("limit" in names) is limit_collected
        assert ("limit" in resolved) is limit_collected


class TestResolveParameters:
    """Tests for validation and defaulting."""

    def test_defaults_filled_in(self):
        params = resolve_parameters(ES_GET_ALL, {"indexId": "books"})
        assert params["returnAll"] is False
        assert params["limit"] == 50
        assert params["simple"] is True
        assert params["options"] == {}

    def test_missing_required_parameter(self):
        with pytest.raises(ValidationError, match="Missing required parameter 'Index ID'"):
            resolve_parameters(ES_GET_ALL, {})

    def test_unknown_parameter_rejected(self):
        with pytest.raises(ValidationError, match="Unknown parameter"):
            resolve_parameters(ES_GET_ALL, {"indexId": "books", "bogus": 1})

    def test_hidden_group_dropped(self):
        params = resolve_parameters(
            ES_CREATE,
            {
                "indexId": "books",
                "dataToSend": "autoMapInputData",
                "fieldsUi": {"fieldValues": [{"fieldId": "a", "fieldValue": "1"}]},
            },
        )
        assert "fieldsUi" not in params
        assert params["inputsToIgnore"] == ""

    def test_hidden_limit_dropped(self):
        params = resolve_parameters(ES_GET_ALL, {"indexId": "books", "returnAll": True, "limit": 5})
        assert "limit" not in params

    def test_number_bounds(self):
        with pytest.raises(ValidationError, match="at least 1"):
            resolve_parameters(ES_GET_ALL, {"indexId": "books", "limit": 0})

    def test_number_strings_coerced(self):
        params = resolve_parameters(ES_GET_ALL, {"indexId": "books", "limit": "20"})
        assert params["limit"] == 20

    def test_boolean_strings_coerced(self):
        params = resolve_parameters(ES_GET_ALL, {"indexId": "books", "returnAll": "true"})
        assert params["returnAll"] is True

    def test_invalid_option_rejected(self):
        with pytest.raises(ValidationError, match="Allowed values: defineBelow, autoMapInputData"):
            resolve_parameters(ES_CREATE, {"indexId": "books", "dataToSend": "nope"})

    def test_collection_is_sparse(self):
        params = resolve_parameters(ES_GET_ALL, {"indexId": "books", "options": {"explain": False}})
        assert params["options"] == {"explain": False}

    def test_unknown_collection_field_rejected(self):
        with pytest.raises(ValidationError, match="Unknown field"):
            resolve_parameters(ES_GET_ALL, {"indexId": "books", "options": {"bogus": 1}})

    def test_fixed_collection_single_entry_wrapped(self):
        params = resolve_parameters(
            ES_CREATE,
            {"indexId": "books", "fieldsUi": {"fieldValues": {"fieldId": "title", "fieldValue": "Dune"}}},
        )
        assert params["fieldsUi"] == {"fieldValues": [{"fieldId": "title", "fieldValue": "Dune"}]}

    def test_nested_field_sees_top_level_values(self):
        issue_create = descriptor_for(JIRA_DESCRIPTORS, "issue", "create")
        values = {
            "jiraVersion": "server",
            "project": "10000",
            "issueType": "10001",
            "summary": "Broken build",
            "additionalFields": {"labels": ["a"], "serverLabels": ["b"]},
        }
        params = resolve_parameters(issue_create, values)
        assert params["additionalFields"] == {"serverLabels": ["b"]}

    def test_multi_options_accepts_single_string(self):
        descriptor = OperationDescriptor(
            "thing", "get", "Get",
            (multi_options("tags", "Tags", (option("A", "a"), option("B", "b"))),),
        )
        assert resolve_parameters(descriptor, {"tags": "a"}) == {"tags": ["a"]}

    def test_string_rejects_objects(self):
        with pytest.raises(ValidationError, match="must be a string"):
            resolve_parameters(ES_GET_ALL, {"indexId": {"name": "books"}})


class TestJsonSchema:
    """Tests for the JSON Schema built from a descriptor."""

    def test_required_excludes_conditional_fields(self):
        descriptor = OperationDescriptor(
            "thing", "getAll", "Get all",
            (
                string("id", "ID", required=True),
                string("extra", "Extra", required=True, show=when(mode="x")),
                return_all_field(),
                limit_field(default=10, max_value=20),
            ),
        )
        schema = to_json_schema(descriptor)
        assert schema["required"] == ["id"]
        assert schema["properties"]["limit"]["maximum"] == 20
        assert "Only used when returnAll is false" in schema["properties"]["limit"]["description"]

    def test_enum_and_collection_properties(self):
        descriptor = OperationDescriptor(
            "thing", "get", "Get",
            (
                options("mode", "Mode", (option("A", "a"), option("B", "b"))),
                collection("options", "Options", boolean("flag", "Flag")),
            ),
        )
        schema = to_json_schema(descriptor)
        assert schema["properties"]["mode"]["enum"] == ["a", "b"]
        assert schema["properties"]["mode"]["default"] == "a"
        assert schema["properties"]["options"]["properties"]["flag"]["type"] == "boolean"
        assert schema["properties"]["options"]["additionalProperties"] is False

    def test_dynamic_options_have_no_enum(self):
        schema = to_json_schema(descriptor_for(JIRA_DESCRIPTORS, "issue", "create"))
        project = schema["properties"]["project"]
        assert "enum" not in project
        assert "getProjects" in project["description"]
