"""HTTP transport for the remote backend."""

from aidraw_client.transport.rest_client import ApiEnvelope, RestClient

__all__ = ["ApiEnvelope", "RestClient"]
