"""Project activity recording for route handlers."""

from querybridge.adapters.audit.decorator import audited, get_client_ip

__all__ = ["audited", "get_client_ip"]
