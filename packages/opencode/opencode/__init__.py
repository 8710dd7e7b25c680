from opencode.client import DEFAULT_SERVER_URL, BackendError, OpenCodeServerClient

__all__ = ["BackendError", "DEFAULT_SERVER_URL", "OpenCodeServerClient"]
