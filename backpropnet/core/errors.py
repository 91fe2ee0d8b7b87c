"""Exceptions raised by the network engine."""

from __future__ import annotations

from typing import Any, Dict, Optional


class NetworkError(ValueError):
    """Base exception for every failure reported by the engine."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}


class TopologyError(NetworkError):
    """Raised when a layer cannot be appended to the network."""


class UsageError(NetworkError):
    """Raised when an operation runs before the network is complete or with a mis-sized vector."""


class IllegalLayerOperationError(NetworkError):
    """Raised when a layer type does not support the requested operation."""


class PersistenceError(NetworkError):
    """Raised when a network file is inaccessible or ill-formed."""


__all__ = [
    "NetworkError",
    "TopologyError",
    "UsageError",
    "IllegalLayerOperationError",
    "PersistenceError",
]
