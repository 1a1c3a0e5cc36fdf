"""FastAPI mock of the remote backend."""

from aidraw_client.mock_backend.app import MockBackendStore, create_app

__all__ = ["MockBackendStore", "create_app"]
