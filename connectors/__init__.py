"""Connectors mapping resource + operation pairs onto third-party HTTP APIs."""

from .base import Connector, InputItem
from .elasticsearch import ElasticsearchConnector
from .emelia import EmeliaConnector
from .jira import JiraConnector
from .raindrop import RaindropConnector

CONNECTORS: dict[str, Connector] = {
    connector.name: connector
    for connector in (ElasticsearchConnector(), JiraConnector(), RaindropConnector(), EmeliaConnector())
}


def get_connector(name: str) -> Connector:
    if name not in CONNECTORS:
        raise ValueError(f"Unknown connector: {name}")
    return CONNECTORS[name]


__all__ = ["CONNECTORS", "Connector", "InputItem", "get_connector"]
