"""Feed-forward network assembled layer by layer and trained by backpropagation."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union

import numpy as np
import structlog

from .activations import Activation, ActivationSpec
from .errors import PersistenceError, TopologyError, UsageError
from .layers import (
    LAYER_CLASSES,
    DenseLayer,
    DropoutLayer,
    HiddenLayer,
    NeuronLayer,
    OutputClassificationLayer,
    OutputRegressionLayer,
)
from .neuron import Neuron
from .persistence import TokenReader, TokenWriter
from .seeding import SeedGenerator
from .types import Array, LayerType, Matrix, Vector

logger = structlog.get_logger(__name__)

LayerSpec = Union[int, Matrix]
BiasSpec = Union[float, Vector]

_SEPARATOR = "------"


class NeuralNetwork:
    """Ordered stack of layers ending in exactly one output layer.

    Layers are appended with the ``add_*`` methods; each new layer reads the
    width of the previous one (or ``input_size`` for the first). Random
    weights and dropout masks all derive from one :class:`SeedGenerator`, so a
    fixed ``seed`` reproduces construction and training bit for bit.
    """

    def __init__(
        self,
        input_size: int,
        learning_rate: float,
        momentum: float = 0.0,
        seed: Optional[int] = None,
        *,
        seed_generator: Optional[SeedGenerator] = None,
    ) -> None:
        if int(input_size) <= 0:
            raise TopologyError(
                f"[Create network] Input size must be positive, got {input_size}.",
                context={"input_size": input_size},
            )
        self.input_size = int(input_size)
        self.learning_rate = float(learning_rate)
        self._momentum = float(momentum)
        self._seed_generator = seed_generator if seed_generator is not None else SeedGenerator(seed)
        self._layers: List[NeuronLayer] = []

    @property
    def momentum(self) -> float:
        return self._momentum

    @property
    def layers(self) -> List[NeuronLayer]:
        return list(self._layers)

    @property
    def seed_generator(self) -> SeedGenerator:
        return self._seed_generator

    @property
    def has_output_layer(self) -> bool:
        return bool(self._layers) and self._layers[-1].is_output

    @property
    def output_size(self) -> int:
        return self._last_layer_size()

    def __len__(self) -> int:
        return len(self._layers)

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------
    def add_hidden_layer(
        self, layer: LayerSpec, activation: ActivationSpec = Activation.LOGISTIC, bias: BiasSpec = 0.0
    ) -> HiddenLayer:
        neurons = self._build_neurons("Add hidden layer", layer, activation, bias)
        return self._append(HiddenLayer(neurons, activation, self.learning_rate, self._momentum))

    def add_output_regression_layer(
        self, layer: LayerSpec, activation: ActivationSpec = Activation.IDENTITY, bias: BiasSpec = 0.0
    ) -> OutputRegressionLayer:
        neurons = self._build_neurons("Add output layer", layer, activation, bias)
        return self._append(OutputRegressionLayer(neurons, activation, self.learning_rate, self._momentum))

    def add_output_classification_layer(
        self, layer: LayerSpec, bias: BiasSpec = 0.0
    ) -> OutputClassificationLayer:
        neurons = self._build_neurons("Add output layer", layer, Activation.IDENTITY, bias)
        return self._append(
            OutputClassificationLayer(neurons, Activation.IDENTITY, self.learning_rate, self._momentum)
        )

    def add_dropout_layer(self, rate: float = 0.5) -> DropoutLayer:
        self._check_open("Add dropout layer")
        if not 0.0 <= float(rate) <= 1.0:
            raise TopologyError(
                f"[Add dropout layer] Dropout rate must lie in [0, 1], got {rate}.",
                context={"rate": rate},
            )
        layer = DropoutLayer.seeded(rate, self._last_layer_size(), self._seed_generator)
        return self._append(layer)

    def _append(self, layer: NeuronLayer):
        self._layers.append(layer)
        logger.debug(
            "layer_added",
            layer_type=layer.layer_type.name,
            size=layer.size,
            position=len(self._layers) - 1,
        )
        return layer

    def _last_layer_size(self) -> int:
        return self._layers[-1].size if self._layers else self.input_size

    def _check_open(self, operation: str) -> None:
        if self.has_output_layer:
            raise TopologyError(
                f"[{operation}] Cannot add a layer after an output layer.",
                context={"operation": operation, "layers": len(self._layers)},
            )

    def _build_neurons(
        self, operation: str, layer: LayerSpec, activation: ActivationSpec, bias: BiasSpec
    ) -> List[Neuron]:
        self._check_open(operation)
        input_size = self._last_layer_size()
        if isinstance(layer, (int, np.integer)):
            count = int(layer)
            if count <= 0:
                raise TopologyError(
                    f"[{operation}] Layer must have at least one neuron, got {count}.",
                    context={"operation": operation, "size": count},
                )
            biases = self._biases(operation, bias, count)
            return [
                Neuron.random(input_size, activation, self.learning_rate, self._momentum, self._seed_generator, b)
                for b in biases
            ]

        rows = [np.asarray(row, dtype=np.float64) for row in layer]
        if not rows:
            raise TopologyError(
                f"[{operation}] Layer must have at least one neuron, got an empty weight matrix.",
                context={"operation": operation, "size": 0},
            )
        for number, row in enumerate(rows, start=1):
            if row.ndim != 1 or row.shape[0] != input_size:
                raise TopologyError(
                    f"[{operation}] Layer size is inconsistent: expected {input_size} "
                    f"provided {row.size} on neuron {number}.",
                    context={"operation": operation, "expected": input_size, "provided": row.size, "neuron": number},
                )
        biases = self._biases(operation, bias, len(rows))
        return [Neuron(row, activation, self.learning_rate, self._momentum, b) for row, b in zip(rows, biases)]

    @staticmethod
    def _biases(operation: str, bias: BiasSpec, count: int) -> List[float]:
        values = np.asarray(bias, dtype=np.float64)
        if values.ndim == 0:
            return [float(values)] * count
        values = values.reshape(-1)
        if values.shape[0] != count:
            raise TopologyError(
                f"[{operation}] Bias size is inconsistent: expected {count} provided {values.shape[0]}.",
                context={"operation": operation, "expected": count, "provided": values.shape[0]},
            )
        return [float(value) for value in values]

    # ------------------------------------------------------------------
    # Propagation
    # ------------------------------------------------------------------
    def _require_output_layer(self, operation: str) -> NeuronLayer:
        if not self._layers:
            raise UsageError(
                f"[{operation}] The network has no layer.", context={"operation": operation}
            )
        if not self.has_output_layer:
            raise UsageError(
                f"[{operation}] The network has no output layer.", context={"operation": operation}
            )
        return self._layers[-1]

    def _expected(self, operation: str, expected: Union[float, Vector]) -> Array:
        output_layer = self._require_output_layer(operation)
        values = np.atleast_1d(np.asarray(expected, dtype=np.float64)).reshape(-1)
        if values.shape[0] != output_layer.size:
            raise UsageError(
                f"[{operation}] Expected vector size is inconsistent: "
                f"expected {output_layer.size} provided {values.shape[0]}.",
                context={"operation": operation, "expected": output_layer.size, "provided": values.shape[0]},
            )
        return values

    def propagate_forward(self, inputs: Vector, ignore_dropout: bool = False) -> Array:
        self._require_output_layer("Propagate forward")
        values = np.asarray(inputs, dtype=np.float64).reshape(-1)
        if values.shape[0] != self.input_size:
            raise UsageError(
                f"[Propagate forward] Input size is inconsistent: "
                f"expected {self.input_size} provided {values.shape[0]}.",
                context={"operation": "Propagate forward", "expected": self.input_size, "provided": values.shape[0]},
            )
        for layer in self._layers:
            values = layer.propagate_forward(values, ignore_dropout)
        return values

    def calc_error(self, expected: Union[float, Vector]) -> float:
        """Error of the last forward pass against ``expected``.

        Regression reports the mean squared error over the output width;
        classification reports the cross-entropy.
        """

        targets = self._expected("Calculate error", expected)
        output_layer = self._layers[-1]
        error = output_layer.calc_error(targets)
        if output_layer.layer_type is LayerType.OUTPUT_REGRESSION:
            return error / output_layer.size
        return error

    def propagate_backward(self, expected: Union[float, Vector], update: bool = True) -> None:
        targets = self._expected("Propagate backward", expected)
        self._layers[-1].propagate_backward_output_layer(targets)
        for index in range(len(self._layers) - 2, -1, -1):
            self._layers[index].propagate_backward_hidden_layer(self._layers[index + 1])
        if update:
            self.update_weights()

    def update_weights(self) -> None:
        for layer in self._layers:
            layer.update_weights()

    def update_learning_rate(self, learning_rate: float) -> None:
        self.learning_rate = float(learning_rate)
        for layer in self._layers:
            layer.update_learning_rate(self.learning_rate)

    def probable_class(self) -> int:
        return self._require_output_layer("Probable class").probable_class()

    def predict(self, inputs: Vector) -> Array:
        """Forward pass with dropout bypassed."""

        return self.propagate_forward(inputs, ignore_dropout=True)

    # ------------------------------------------------------------------
    # Inspection and persistence
    # ------------------------------------------------------------------
    def inspect(self) -> str:
        lines = [_SEPARATOR, f"* Inputs: {self.input_size}", _SEPARATOR]
        for layer in self._layers:
            lines.extend(layer.describe())
            lines.append(_SEPARATOR)
        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.inspect()

    def to_text(self) -> str:
        writer = TokenWriter()
        writer.line("[NetworkBegin]")
        writer.line("LayerNumber:", len(self._layers))
        writer.line("Momentum:", self._momentum)
        writer.line("LearningRate:", self.learning_rate)
        writer.line("InputSize:", self.input_size)
        writer.generator("SeedGenerator:", self._seed_generator.get_state())
        writer.blank()
        for layer in self._layers:
            writer.line("LayerType:", int(layer.layer_type))
            layer.write(writer)
            writer.blank()
        writer.line("[NetworkEnd]")
        return writer.getvalue()

    @classmethod
    def from_text(cls, text: str, source: str = "<string>") -> "NeuralNetwork":
        reader = TokenReader(text, source=source)
        reader.expect("[NetworkBegin]")
        layer_count = reader.read_count("LayerNumber:")
        momentum = reader.read_float("Momentum:")
        learning_rate = reader.read_float("LearningRate:")
        input_size = reader.read_count("InputSize:")
        if input_size == 0:
            raise PersistenceError(
                f"[Load network] InputSize must be positive ({source}).", context={"source": source}
            )
        seed_generator = SeedGenerator.from_state(reader.read_generator("SeedGenerator:"))
        network = cls(input_size, learning_rate, momentum, seed_generator=seed_generator)
        for _ in range(layer_count):
            layer_type = reader.read_enum("LayerType:", LayerType)
            layer = LAYER_CLASSES[layer_type].read(reader)
            network._attach_loaded(layer, source)
        reader.expect("[NetworkEnd]")
        return network

    def _attach_loaded(self, layer: NeuronLayer, source: str) -> None:
        if self.has_output_layer:
            raise PersistenceError(
                f"[Load network] A layer follows the output layer ({source}).",
                context={"source": source, "position": len(self._layers)},
            )
        width = self._last_layer_size()
        actual = layer.input_size if isinstance(layer, DenseLayer) else layer.size
        if actual != width:
            raise PersistenceError(
                f"[Load network] Layer {len(self._layers) + 1} expects {actual} inputs "
                f"but the previous width is {width} ({source}).",
                context={"source": source, "expected": width, "provided": actual},
            )
        self._layers.append(layer)

    def save_to_file(self, path: Union[str, Path]) -> Path:
        target = Path(path)
        try:
            target.write_text(self.to_text(), encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(
                f"[Save network] Cannot write neural network to {target}.",
                context={"path": str(target)},
            ) from exc
        logger.info("network_saved", path=str(target), layers=len(self._layers))
        return target

    @classmethod
    def load_from_file(cls, path: Union[str, Path]) -> "NeuralNetwork":
        source = Path(path)
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(
                f"[Load network] Cannot build neural network from file. {source} is not accessible.",
                context={"path": str(source)},
            ) from exc
        network = cls.from_text(text, source=str(source))
        logger.info("network_loaded", path=str(source), layers=len(network))
        return network


__all__ = ["NeuralNetwork", "LayerSpec", "BiasSpec"]
