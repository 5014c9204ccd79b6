from __future__ import annotations

from docbot.connectors.base import SourceConnector


class ConnectorRegistryError(Exception):
    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class ConnectorRegistry:
    def __init__(self) -> None:
        self._connectors: dict[str, SourceConnector] = {}

    def register(self, connector: SourceConnector) -> None:
        self._connectors[connector.source_label] = connector

    def get(self, source_label: str) -> SourceConnector:
        connector = self._connectors.get(source_label)
        if connector is None:
            raise ConnectorRegistryError("S-CONNECTOR-UNKNOWN-SOURCE", f"Unknown source: {source_label}")
        if not connector.is_available():
            raise ConnectorRegistryError("S-CONNECTOR-NOT-CONFIGURED", f"Connector {source_label} is not configured")
        return connector

    def list_registered(self) -> list[str]:
        return sorted(self._connectors.keys())

    def connectors(self) -> list[SourceConnector]:
        return [self._connectors[label] for label in self.list_registered()]

    def clear(self) -> None:
        self._connectors.clear()


registry = ConnectorRegistry()
