"""External database adapters and the connection broker."""

from querybridge.adapters.datasource.base import BaseAdapter
from querybridge.adapters.datasource.broker import ConnectionBroker
from querybridge.adapters.datasource.encryption import ConnectionConfigCipher
from querybridge.adapters.datasource.registry import (
    AdapterRegistry,
    EngineSpec,
    build_default_registry,
)

__all__ = [
    "AdapterRegistry",
    "BaseAdapter",
    "ConnectionBroker",
    "ConnectionConfigCipher",
    "EngineSpec",
    "build_default_registry",
]
