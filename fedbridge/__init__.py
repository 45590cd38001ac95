"""Identity-federation bridge for an OAuth2/SAML2 upstream identity provider."""

from fedbridge.connector import HSDPConnector, open_connector
from fedbridge.models import CallbackRequest, ConnectorData, Identity, Scopes

__all__ = [
    "CallbackRequest",
    "ConnectorData",
    "HSDPConnector",
    "Identity",
    "Scopes",
    "open_connector",
]
