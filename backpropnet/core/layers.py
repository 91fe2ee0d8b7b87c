"""Layer variants stacked by :class:`backpropnet.core.network.NeuralNetwork`.

Dense layers hold neurons. The two output layers are terminal and know how to
score a target vector. The dropout layer has no weights: it zeroes a random
subset of its inputs during training and rescales the rest.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Dict, List, NoReturn, Optional, Sequence, Type

import numpy as np

from .activations import Activation, ActivationSpec, build_activation, resolve_activation
from .errors import IllegalLayerOperationError, PersistenceError, UsageError
from .neuron import Neuron
from .persistence import TokenReader, TokenWriter
from .seeding import SeedGenerator, generator_state, make_rng, restore_generator_state
from .types import Array, LayerType


class NeuronLayer(ABC):
    """Interface shared by every layer.

    Operations a variant does not support raise
    :class:`~backpropnet.core.errors.IllegalLayerOperationError`.
    """

    layer_type: ClassVar[LayerType]
    is_dropout: ClassVar[bool] = False

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of values this layer emits."""

    @property
    def is_output(self) -> bool:
        return self.layer_type.is_output

    @property
    def dropout_rate(self) -> float:
        return 0.0

    def dropped(self, index: int) -> bool:
        return False

    @abstractmethod
    def propagate_forward(self, inputs: Array, ignore_dropout: bool = False) -> Array:
        ...

    @abstractmethod
    def propagate_backward_hidden_layer(self, next_layer: "NeuronLayer") -> None:
        ...

    @abstractmethod
    def sum_delta(self, index: int) -> float:
        """Backward signal this layer sends to position ``index`` of its input."""

    def propagate_backward_output_layer(self, expected: Array) -> None:
        self._illegal("Propagate backward", "Only an output layer can receive a target vector.")

    def calc_error(self, expected: Array) -> float:
        self._illegal("Calculate error", "Only an output layer can compute an error.")

    def probable_class(self) -> int:
        self._illegal("Probable class", "This layer has no class scores.")

    def update_weights(self) -> None:
        pass

    def update_learning_rate(self, learning_rate: float) -> None:
        pass

    @abstractmethod
    def describe(self) -> List[str]:
        ...

    @abstractmethod
    def write(self, writer: TokenWriter) -> None:
        ...

    @classmethod
    @abstractmethod
    def read(cls, reader: TokenReader) -> "NeuronLayer":
        ...

    def _illegal(self, operation: str, reason: str) -> NoReturn:
        raise IllegalLayerOperationError(
            f"[{operation}] {reason} Layer type: {self.layer_type.name}",
            context={"operation": operation, "layer_type": self.layer_type.name},
        )

    def _check_expected(self, operation: str, expected: Array) -> None:
        if expected.shape[0] != self.size:
            raise UsageError(
                f"[{operation}] Expected vector size is inconsistent: "
                f"expected {self.size} provided {expected.shape[0]}.",
                context={"operation": operation, "expected": self.size, "provided": expected.shape[0]},
            )


class DenseLayer(NeuronLayer):
    """Fully connected layer sharing one activation, learning rate and momentum."""

    layer_type = LayerType.HIDDEN

    def __init__(
        self,
        neurons: Sequence[Neuron],
        activation: ActivationSpec,
        learning_rate: float,
        momentum: float,
    ) -> None:
        self.neurons: List[Neuron] = list(neurons)
        self.activation = resolve_activation(activation)
        self.learning_rate = float(learning_rate)
        self.momentum = float(momentum)

    @property
    def size(self) -> int:
        return len(self.neurons)

    @property
    def input_size(self) -> int:
        return self.neurons[0].input_size if self.neurons else 0

    @property
    def outputs(self) -> Array:
        return np.array([neuron.output for neuron in self.neurons], dtype=np.float64)

    def propagate_forward(self, inputs: Array, ignore_dropout: bool = False) -> Array:
        inputs = np.asarray(inputs, dtype=np.float64)
        return np.array([neuron.propagate_forward(inputs) for neuron in self.neurons], dtype=np.float64)

    def propagate_backward_hidden_layer(self, next_layer: NeuronLayer) -> None:
        for index, neuron in enumerate(self.neurons):
            neuron.propagate_backward_hidden_layer(
                next_layer.sum_delta(index),
                next_layer.is_dropout,
                next_layer.dropout_rate,
                next_layer.dropped(index),
            )

    def sum_delta(self, index: int) -> float:
        total = 0.0
        for neuron in self.neurons:
            total += neuron.weighted_delta(index)
        return total

    def probable_class(self) -> int:
        # First maximum wins on ties.
        return int(np.argmax(self.outputs))

    def update_weights(self) -> None:
        for neuron in self.neurons:
            neuron.update_weights()

    def update_learning_rate(self, learning_rate: float) -> None:
        self.learning_rate = float(learning_rate)
        for neuron in self.neurons:
            neuron.update_learning_rate(self.learning_rate)

    def describe(self) -> List[str]:
        label = build_activation(self.activation).label
        lines = [f"Neurons: {self.size} activation: {label}"]
        for number, neuron in enumerate(self.neurons, start=1):
            lines.append(f" Neuron {number}")
            lines.extend(neuron.describe())
        return lines

    def write(self, writer: TokenWriter) -> None:
        writer.line("[LayerBegin]")
        writer.line("ActivationFunction:", int(self.activation), indent=1)
        writer.line("Momentum:", self.momentum, indent=1)
        writer.line("LearningRate:", self.learning_rate, indent=1)
        writer.line("InputSize:", self.input_size, indent=1)
        writer.line("OutputSize:", self.size, indent=1)
        self._write_extra(writer)
        for neuron in self.neurons:
            neuron.write(writer)
        writer.line("[LayerEnd]")

    def _write_extra(self, writer: TokenWriter) -> None:
        pass

    def _read_extra(self, reader: TokenReader, output_size: int) -> None:
        pass

    @classmethod
    def read(cls, reader: TokenReader) -> "DenseLayer":
        reader.expect("[LayerBegin]")
        activation = reader.read_enum("ActivationFunction:", Activation)
        momentum = reader.read_float("Momentum:")
        learning_rate = reader.read_float("LearningRate:")
        input_size = reader.read_count("InputSize:")
        output_size = reader.read_count("OutputSize:")
        layer = cls([], activation, learning_rate, momentum)
        layer._read_extra(reader, output_size)
        for _ in range(output_size):
            neuron = Neuron.read(reader)
            if neuron.input_size != input_size:
                raise PersistenceError(
                    f"[Load network] Neuron has {neuron.input_size} connections, layer declares {input_size}.",
                    context={"expected": input_size, "provided": neuron.input_size},
                )
            layer.neurons.append(neuron)
        reader.expect("[LayerEnd]")
        return layer


class HiddenLayer(DenseLayer):
    """Non-terminal dense layer."""

    layer_type = LayerType.HIDDEN


class OutputRegressionLayer(DenseLayer):
    """Terminal layer scored by the sum of squared differences."""

    layer_type = LayerType.OUTPUT_REGRESSION

    def calc_error(self, expected: Array) -> float:
        self._check_expected("Calculate error", expected)
        total = 0.0
        for neuron, target in zip(self.neurons, expected):
            total += neuron.squared_error(float(target))
        return total

    def propagate_backward_output_layer(self, expected: Array) -> None:
        self._check_expected("Propagate backward", expected)
        for neuron, target in zip(self.neurons, expected):
            neuron.propagate_backward_output_layer(float(target))


class OutputClassificationLayer(DenseLayer):
    """Terminal layer emitting a softmax over identity-activated neurons.

    The softmax is taken without shifting by the maximum, so raw scores of
    several hundred overflow to ``inf``/``nan``.
    """

    layer_type = LayerType.OUTPUT_CLASSIFICATION

    def __init__(
        self,
        neurons: Sequence[Neuron],
        activation: ActivationSpec = Activation.IDENTITY,
        learning_rate: float = 0.0,
        momentum: float = 0.0,
    ) -> None:
        super().__init__(neurons, activation, learning_rate, momentum)
        self.softmax = np.zeros(len(self.neurons), dtype=np.float64)

    @property
    def outputs(self) -> Array:
        return self.softmax.copy()

    def propagate_forward(self, inputs: Array, ignore_dropout: bool = False) -> Array:
        raw = super().propagate_forward(inputs, ignore_dropout)
        with np.errstate(over="ignore", invalid="ignore"):
            exps = np.exp(raw)
            self.softmax = exps / exps.sum()
        return self.softmax.copy()

    def calc_error(self, expected: Array) -> float:
        self._check_expected("Calculate error", expected)
        with np.errstate(divide="ignore", invalid="ignore"):
            terms = expected * np.log(self.softmax)
        return -float(np.sum(terms))

    def propagate_backward_output_layer(self, expected: Array) -> None:
        self._check_expected("Propagate backward", expected)
        target_sum = float(np.sum(expected))
        for neuron, target, output in zip(self.neurons, expected, self.softmax):
            neuron.propagate_backward_classification_layer(-(float(target) - float(output) * target_sum))

    def _write_extra(self, writer: TokenWriter) -> None:
        writer.line("OutputClassification:", *self.softmax, indent=1)

    def _read_extra(self, reader: TokenReader, output_size: int) -> None:
        self.softmax = reader.read_floats(output_size, "OutputClassification:")


class DropoutLayer(NeuronLayer):
    """Inverted dropout with its own random generator.

    During training a position is kept when a uniform draw is ``>= rate`` and
    scaled by ``1 / (1 - rate)``; otherwise it becomes zero. With
    ``ignore_dropout`` every position is kept and rescaled without drawing.
    """

    layer_type = LayerType.DROPOUT
    is_dropout = True

    def __init__(self, rate: float, size: int, rng: Optional[np.random.Generator] = None) -> None:
        self.rate = float(rate)
        self._size = int(size)
        self.rng = rng if rng is not None else make_rng(0)
        self.keep_mask = np.ones(self._size, dtype=bool)
        self.next_delta_sums = np.zeros(self._size, dtype=np.float64)

    @classmethod
    def seeded(cls, rate: float, size: int, seed_generator: SeedGenerator) -> "DropoutLayer":
        return cls(rate, size, make_rng(seed_generator.seed()))

    @property
    def size(self) -> int:
        return self._size

    @property
    def dropout_rate(self) -> float:
        return self.rate

    def dropped(self, index: int) -> bool:
        return not bool(self.keep_mask[index])

    def propagate_forward(self, inputs: Array, ignore_dropout: bool = False) -> Array:
        inputs = np.asarray(inputs, dtype=np.float64)
        if ignore_dropout:
            # No draw: every position is kept and still rescaled.
            self.keep_mask = np.ones(self._size, dtype=bool)
        else:
            self.keep_mask = self.rng.random(self._size) >= self.rate
        outputs = np.zeros(self._size, dtype=np.float64)
        if self.keep_mask.any():
            outputs[self.keep_mask] = inputs[self.keep_mask] / (1.0 - self.rate)
        return outputs

    def propagate_backward_hidden_layer(self, next_layer: NeuronLayer) -> None:
        self.next_delta_sums = np.array(
            [next_layer.sum_delta(index) for index in range(self._size)], dtype=np.float64
        )

    def sum_delta(self, index: int) -> float:
        return float(self.next_delta_sums[index])

    def probable_class(self) -> int:
        self._illegal("Probable class", "A dropout layer has no class scores.")

    def describe(self) -> List[str]:
        return [f"Neurons: {self._size}", f"Dropout layer of rate {self.rate}"]

    def write(self, writer: TokenWriter) -> None:
        writer.line("[LayerBegin]")
        writer.line("Size:", self._size, indent=1)
        writer.line("DropoutRate:", self.rate, indent=1)
        writer.generator("Generator:", generator_state(self.rng.bit_generator), indent=1)
        writer.line("Activations:", *self.keep_mask, indent=1)
        writer.line("Deltas:", *self.next_delta_sums, indent=1)
        writer.line("[LayerEnd]")

    @classmethod
    def read(cls, reader: TokenReader) -> "DropoutLayer":
        reader.expect("[LayerBegin]")
        size = reader.read_count("Size:")
        rate = reader.read_float("DropoutRate:")
        state = reader.read_generator("Generator:")
        layer = cls(rate, size, make_rng(0))
        restore_generator_state(layer.rng.bit_generator, state)
        layer.keep_mask = reader.read_flags(size, "Activations:")
        layer.next_delta_sums = reader.read_floats(size, "Deltas:")
        reader.expect("[LayerEnd]")
        return layer


LAYER_CLASSES: Dict[LayerType, Type[NeuronLayer]] = {
    LayerType.HIDDEN: HiddenLayer,
    LayerType.DROPOUT: DropoutLayer,
    LayerType.OUTPUT_CLASSIFICATION: OutputClassificationLayer,
    LayerType.OUTPUT_REGRESSION: OutputRegressionLayer,
}


__all__ = [
    "NeuronLayer",
    "DenseLayer",
    "HiddenLayer",
    "OutputRegressionLayer",
    "OutputClassificationLayer",
    "DropoutLayer",
    "LAYER_CLASSES",
]
