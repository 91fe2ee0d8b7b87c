"""backpropnet public API."""

from .core import activations, types  # noqa: F401
from .core.activations import Activation
from .core.errors import (
    IllegalLayerOperationError,
    NetworkError,
    PersistenceError,
    TopologyError,
    UsageError,
)
from .core.encoding import label_to_one_hot, labels_to_one_hot
from .core.network import NeuralNetwork
from .core.seeding import SeedGenerator
from .core.types import LayerType, RunResult
from .training.pipelines import load_preset, presets, run_pipeline
from .training.trainer import MLPClassifier, MLPRegressor

__all__ = [
    "Activation",
    "IllegalLayerOperationError",
    "LayerType",
    "MLPClassifier",
    "MLPRegressor",
    "NetworkError",
    "NeuralNetwork",
    "PersistenceError",
    "RunResult",
    "SeedGenerator",
    "TopologyError",
    "UsageError",
    "activations",
    "label_to_one_hot",
    "labels_to_one_hot",
    "load_preset",
    "presets",
    "run_pipeline",
    "types",
]
