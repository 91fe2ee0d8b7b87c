"""Network engine: neurons, layers, the network stack and its text format."""

from . import activations, encoding, errors, layers, neuron, persistence, seeding, types
from .activations import Activation
from .errors import (
    IllegalLayerOperationError,
    NetworkError,
    PersistenceError,
    TopologyError,
    UsageError,
)
from .network import NeuralNetwork
from .seeding import SeedGenerator
from .types import LayerType

__all__ = [
    "Activation",
    "IllegalLayerOperationError",
    "LayerType",
    "NetworkError",
    "NeuralNetwork",
    "PersistenceError",
    "SeedGenerator",
    "TopologyError",
    "UsageError",
    "activations",
    "encoding",
    "errors",
    "layers",
    "neuron",
    "persistence",
    "seeding",
    "types",
]
