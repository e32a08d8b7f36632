"""Tests for the Workflow Connectors MCP server."""

import json

import pytest

from server import TOOLS, build_tool_schema, call_tool, execute_tool, list_tools, snake_case

from conftest import body_of

JIRA_API = "https://example.atlassian.net/rest/api/2"
RAINDROP_API = "https://api.raindrop.io/rest/v1"


class TestToolRegistry:
    """Tests for the tool table."""

    def test_one_tool_per_operation(self):
        operation_tools = [config for config in TOOLS.values() if config["kind"] == "operation"]
        assert len(operation_tools) == 36

    def test_essential_tools_present(self):
        essential_tools = {
            "elasticsearch_document_get_all",
            "jira_issue_create",
            "jira_issue_attachment_get_all",
            "jira_issue_comment_add",
            "jira_user_get",
            "raindrop_bookmark_update",
            "emelia_campaign_add_contact",
            "jira_load_options",
            "raindrop_load_options",
            "emelia_load_options",
            "jira_test_credentials",
        }

        missing_tools = essential_tools - set(TOOLS)
        assert not missing_tools, f"Missing essential tools: {missing_tools}"

    def test_elasticsearch_has_no_loader_tool(self):
        assert "elasticsearch_load_options" not in TOOLS

    def test_snake_case(self):
        assert snake_case("issueAttachment") == "issue_attachment"
        assert snake_case("getAll") == "get_all"
        assert snake_case("document") == "document"


class TestListTools:
    """Tests for the list_tools handler."""

    @pytest.mark.asyncio
    async def test_list_tools_returns_all_tools(self):
        tools = await list_tools()

        assert len(tools) == len(TOOLS) == 40

    @pytest.mark.asyncio
    async def test_list_tools_have_input_schemas(self):
        tools = await list_tools()

        for tool in tools:
            assert tool.description
            assert tool.inputSchema["type"] == "object"

    @pytest.mark.asyncio
    async def test_write_operations_flagged(self):
        tools = {tool.name: tool for tool in await list_tools()}

        assert "WRITE OPERATION" in tools["jira_issue_delete"].description
        assert "WRITE OPERATION" in tools["emelia_campaign_pause"].description
        assert "WRITE OPERATION" not in tools["jira_issue_get_all"].description

    def test_operation_schema_carries_fields_and_items(self):
        tool = build_tool_schema("jira_issue_create", TOOLS["jira_issue_create"])
        schema = tool.inputSchema

        assert set(schema["required"]) == {"project", "issueType", "summary"}
        assert schema["properties"]["jiraVersion"]["enum"] == ["cloud", "server"]
        assert schema["properties"]["items"]["type"] == "array"
        assert schema["properties"]["continue_on_fail"]["type"] == "boolean"

    def test_load_options_schema_lists_loaders(self):
        tool = build_tool_schema("raindrop_load_options", TOOLS["raindrop_load_options"])

        assert tool.inputSchema["properties"]["method"]["enum"] == ["getCollections"]


class TestCallTool:
    """Tests for the call_tool handler."""

    @pytest.mark.asyncio
    async def test_call_tool_returns_records(self, httpx_mock):
        httpx_mock.add_response(url=f"{JIRA_API}/issue/ABC-1", method="GET", json={"key": "ABC-1"})

        result = await call_tool("jira_issue_get", {"issueKey": "ABC-1"})

        assert len(result) == 1
        assert result[0].type == "text"
        assert json.loads(result[0].text) == [{"json": {"key": "ABC-1"}, "pairedItem": 0}]

    @pytest.mark.asyncio
    async def test_items_processed_in_order(self, httpx_mock):
        httpx_mock.add_response(url=f"{RAINDROP_API}/raindrop/1", method="GET", json={"item": {"_id": 1}})
        httpx_mock.add_response(url=f"{RAINDROP_API}/raindrop/2", method="GET", json={"item": {"_id": 2}})

        result = await call_tool(
            "raindrop_bookmark_get",
            {"items": [{"parameters": {"bookmarkId": "1"}}, {"parameters": {"bookmarkId": "2"}}]},
        )

        records = json.loads(result[0].text)
        assert [record["json"]["_id"] for record in records] == [1, 2]
        assert [record["pairedItem"] for record in records] == [0, 1]

    @pytest.mark.asyncio
    async def test_call_tool_handles_http_error(self, httpx_mock):
        httpx_mock.add_response(
            url=f"{JIRA_API}/issue/ABC-404", method="GET", json={"errorMessages": ["Issue does not exist"]},
            status_code=404,
        )

        result = await call_tool("jira_issue_get", {"issueKey": "ABC-404", "continue_on_fail": False})

        assert result[0].text == "Jira API error: 404 - Issue does not exist"

    @pytest.mark.asyncio
    async def test_call_tool_handles_generic_error(self):
        result = await call_tool("unknown_tool", {})

        assert result[0].text == "Error: Unknown tool: unknown_tool"

    @pytest.mark.asyncio
    async def test_writes_disabled(self, httpx_mock, monkeypatch):
        monkeypatch.setenv("CONNECTORS_ALLOW_WRITES", "false")

        result = await call_tool("jira_issue_delete", {"issueKey": "ABC-1"})

        assert result[0].text.startswith("Error: Write operations (issue:delete) are disabled")
        assert httpx_mock.requests == []

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("RAINDROP_ACCESS_TOKEN")

        result = await call_tool("raindrop_bookmark_get", {"bookmarkId": "1"})

        assert result[0].text == "Error: RAINDROP_ACCESS_TOKEN must be set in environment"

    @pytest.mark.asyncio
    async def test_load_options_tool(self, httpx_mock):
        httpx_mock.add_response(
            url=f"{JIRA_API}/priority", method="GET",
            json=[{"id": "2", "name": "High"}, {"id": "4", "name": "Low"}],
        )

        result = await call_tool("jira_load_options", {"method": "getPriorities"})

        assert json.loads(result[0].text) == [{"name": "High", "value": "2"}, {"name": "Low", "value": "4"}]

    @pytest.mark.asyncio
    async def test_credentials_tool(self, httpx_mock):
        httpx_mock.add_response(url=f"{JIRA_API}/project", method="GET", json=[])

        result = await call_tool("jira_test_credentials", {"jiraVersion": "server"})

        assert json.loads(result[0].text)["status"] == "OK"


class TestExecuteTool:
    """Tests for argument handling."""

    @pytest.mark.asyncio
    async def test_unknown_tool_raises_error(self):
        with pytest.raises(ValueError, match="Unknown tool: nonexistent_tool"):
            await execute_tool("nonexistent_tool", {})

    @pytest.mark.asyncio
    async def test_item_parameters_override_shared(self, httpx_mock):
        httpx_mock.add_response(url=f"{RAINDROP_API}/raindrop/9", method="PUT", json={"item": {"_id": 9}})

        await execute_tool(
            "raindrop_bookmark_update",
            {
                "bookmarkId": "1",
                "updateFields": {"title": "Shared"},
                "items": [{"parameters": {"bookmarkId": "9"}}],
            },
        )

        assert body_of(httpx_mock.requests[0]) == {"title": "Shared"}

    @pytest.mark.asyncio
    async def test_items_must_be_a_list(self):
        with pytest.raises(ValueError, match="items must be a list"):
            await execute_tool("raindrop_bookmark_get", {"bookmarkId": "1", "items": "nope"})
