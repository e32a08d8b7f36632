#!/usr/bin/env python3
"""Workflow Connectors MCP Server - Elasticsearch, Jira, Raindrop and Emelia operations as MCP tools."""

import json
import logging
import re
import sys
from typing import Any

import httpx
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from connectors import CONNECTORS, get_connector
from connectors.base import InputItem
from connectors.config import Settings
from connectors.errors import ValidationError
from connectors.fields import OperationDescriptor, to_json_schema
from connectors.http import error_message

# stdout carries the MCP stdio stream.
logging.basicConfig(
    stream=sys.stderr,
    level=Settings.from_env().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

WRITE_WARNING = "⚠️ WRITE OPERATION - Confirm with user before calling."
# Arguments consumed by the server itself rather than passed to the operation.
RESERVED_ARGUMENTS = ("items", "continue_on_fail")


def snake_case(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def operation_tool_name(connector_name: str, descriptor: OperationDescriptor) -> str:
    return f"{connector_name}_{snake_case(descriptor.resource)}_{snake_case(descriptor.operation)}"


def build_tools() -> dict[str, dict[str, Any]]:
    """One tool per (connector, resource, operation), plus option loaders and the Jira credential test."""
    tools: dict[str, dict[str, Any]] = {}
    for connector in CONNECTORS.values():
        for descriptor in connector.descriptors:
            description = f"{connector.display_name}: {descriptor.description}."
            if descriptor.writes:
                description = f"{WRITE_WARNING} {description}"
            tools[operation_tool_name(connector.name, descriptor)] = {
                "kind": "operation",
                "connector": connector.name,
                "resource": descriptor.resource,
                "operation": descriptor.operation,
                "description": description,
            }
        if connector.loader_names:
            tools[f"{connector.name}_load_options"] = {
                "kind": "load_options",
                "connector": connector.name,
                "description": (
                    f"{connector.display_name}: list the choices of a dynamic option field "
                    f"({', '.join(connector.loader_names)})."
                ),
            }
    tools["jira_test_credentials"] = {
        "kind": "test_credentials",
        "connector": "jira",
        "description": "Jira: check the configured credentials by listing projects.",
    }
    return tools


TOOLS = build_tools()

ITEMS_SCHEMA = {
    "type": "array",
    "description": (
        "Input records processed one at a time. Each may carry 'json', 'binary' "
        "(property name -> {data (base64), mimeType, fileName}) and 'parameters' "
        "overriding the shared parameters for that record."
    ),
    "items": {
        "type": "object",
        "properties": {
            "json": {"type": "object"},
            "binary": {"type": "object"},
            "parameters": {"type": "object"},
        },
    },
}

CONTINUE_ON_FAIL_SCHEMA = {
    "type": "boolean",
    "description": "Report a failing record as {'error': ...} and carry on with the next one",
}


def build_tool_schema(tool_name: str, tool_config: dict) -> Tool:
    """Build a Tool object from an operation's field table."""
    connector = get_connector(tool_config["connector"])
    kind = tool_config["kind"]

    if kind == "operation":
        input_schema = to_json_schema(connector.descriptor(tool_config["resource"], tool_config["operation"]))
        input_schema["properties"]["items"] = ITEMS_SCHEMA
        input_schema["properties"]["continue_on_fail"] = CONTINUE_ON_FAIL_SCHEMA
    elif kind == "load_options":
        input_schema = {
            "type": "object",
            "properties": {
                "method": {"type": "string", "enum": connector.loader_names},
                "parameters": {
                    "type": "object",
                    "description": "Values the loader depends on, e.g. project or issueKey",
                },
            },
            "required": ["method"],
        }
    else:
        input_schema = {
            "type": "object",
            "properties": {"jiraVersion": {"type": "string", "enum": ["cloud", "server"], "default": "cloud"}},
            "required": [],
        }

    return Tool(name=tool_name, description=tool_config["description"], inputSchema=input_schema)


# Create the MCP server
server = Server("workflow-connectors")


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List available connector tools."""
    return [build_tool_schema(name, config) for name, config in TOOLS.items()]


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Handle tool calls, turning failures into text results."""
    try:
        result = await execute_tool(name, arguments or {})
        return [TextContent(type="text", text=json.dumps(result, indent=2))]

    except httpx.HTTPStatusError as e:
        display_name = get_connector(TOOLS[name]["connector"]).display_name
        return [TextContent(type="text", text=f"{display_name} API error: {error_message(e)}")]
    except Exception as e:
        logger.exception("Tool %s failed", name)
        return [TextContent(type="text", text=f"Error: {str(e)}")]


async def execute_tool(name: str, arguments: dict[str, Any]) -> Any:
    """Dispatch a tool call to its connector."""
    if name not in TOOLS:
        raise ValueError(f"Unknown tool: {name}")

    tool_config = TOOLS[name]
    connector = get_connector(tool_config["connector"])
    kind = tool_config["kind"]

    if kind == "load_options":
        return await connector.load_options(arguments.get("method", ""), arguments.get("parameters"))
    if kind == "test_credentials":
        return await connector.test_credentials(arguments.get("jiraVersion", "cloud"))

    raw_items = arguments.get("items") or []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list of objects")
    items = [InputItem.from_dict(item) for item in raw_items]
    parameters = {key: value for key, value in arguments.items() if key not in RESERVED_ARGUMENTS}

    return await connector.execute(
        tool_config["resource"],
        tool_config["operation"],
        items,
        parameters,
        continue_on_fail=arguments.get("continue_on_fail"),
    )


async def main():
    """Run the MCP server."""
    logger.info("Serving %d tools", len(TOOLS))
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


if __name__ == "__main__":
    import asyncio
    asyncio.run(main())
