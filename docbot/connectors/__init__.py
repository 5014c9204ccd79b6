from docbot.connectors.base import SourceConnector, SourceDocument
from docbot.connectors.registry import ConnectorRegistry, ConnectorRegistryError, registry


def register_default_connectors(target: ConnectorRegistry | None = None) -> ConnectorRegistry:
    from docbot.connectors.confluence import ConfluencePagesConnector
    from docbot.connectors.google_drive import GoogleDriveConnector
    from docbot.connectors.s3_catalog import S3CatalogConnector

    target = target or registry
    target.register(GoogleDriveConnector())
    target.register(ConfluencePagesConnector())
    target.register(S3CatalogConnector())
    return target
