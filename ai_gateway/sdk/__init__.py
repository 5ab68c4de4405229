"""
SDK for the AI gateway.

Provides programmatic access to the interactive gateway and the provider client.
"""

from .gateway import AIGateway, GatewayRequest, GatewayResponse, client_key_from_headers
from .openai_client import OpenAIProvider

__all__ = [
    "AIGateway",
    "GatewayRequest",
    "GatewayResponse",
    "OpenAIProvider",
    "client_key_from_headers",
]
