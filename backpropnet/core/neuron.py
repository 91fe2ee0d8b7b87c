"""Single dense unit with momentum-SGD weight updates."""

from __future__ import annotations

from typing import List

import numpy as np

from .activations import Activation, ActivationSpec, build_activation, resolve_activation
from .persistence import TokenReader, TokenWriter
from .seeding import SeedGenerator, make_rng
from .types import Array, Vector

INIT_LOW = -0.5
INIT_HIGH = 0.5


class Neuron:
    """Weights, bias, momentum buffers and the cache of the last sample seen.

    ``propagate_backward_*`` only computes :attr:`delta`; the weights move when
    :meth:`update_weights` is called, which lets a caller accumulate a batch
    before applying the step.
    """

    def __init__(
        self,
        weights: Vector,
        activation: ActivationSpec,
        learning_rate: float,
        momentum: float,
        bias: float = 0.0,
    ) -> None:
        self.activation = resolve_activation(activation)
        self._function = build_activation(self.activation)
        self.learning_rate = float(learning_rate)
        self._momentum = float(momentum)
        self.weights = np.array(weights, dtype=np.float64).reshape(-1)
        self.bias = float(bias)
        self.weights_prev_change = np.zeros_like(self.weights)
        self.bias_prev_change = 0.0
        self.inputs = np.zeros_like(self.weights)
        self.output = 0.0
        self.delta = 0.0

    @classmethod
    def random(
        cls,
        input_size: int,
        activation: ActivationSpec,
        learning_rate: float,
        momentum: float,
        seed_generator: SeedGenerator,
        bias: float = 0.0,
    ) -> "Neuron":
        rng = make_rng(seed_generator.seed())
        weights = rng.uniform(INIT_LOW, INIT_HIGH, size=input_size)
        return cls(weights, activation, learning_rate, momentum, bias)

    @property
    def momentum(self) -> float:
        return self._momentum

    @property
    def input_size(self) -> int:
        return int(self.weights.shape[0])

    def propagate_forward(self, inputs: Array) -> float:
        self.inputs = np.array(inputs, dtype=np.float64)
        total = float(np.dot(self.weights, self.inputs)) + self.bias
        self.output = self._function.calc(total)
        return self.output

    def squared_error(self, expected: float) -> float:
        diff = expected - self.output
        return diff * diff

    def propagate_backward_output_layer(self, expected: float) -> None:
        self.delta = -(expected - self.output) * self._function.calc_derivative(self.output)

    def propagate_backward_classification_layer(self, delta: float) -> None:
        # The softmax layer computes the cross-entropy gradient itself.
        self.delta = float(delta)

    def propagate_backward_hidden_layer(
        self,
        sum_delta: float,
        next_is_dropout: bool = False,
        dropout_rate: float = 0.0,
        dropped: bool = False,
    ) -> None:
        if next_is_dropout:
            # Undo the inverted-dropout scaling before taking the derivative.
            self.output = 0.0 if dropped else self.output / (1.0 - dropout_rate)
        self.delta = sum_delta * self._function.calc_derivative(self.output)

    def weighted_delta(self, index: int) -> float:
        return self.delta * float(self.weights[index])

    def update_weights(self) -> None:
        change = (self.learning_rate * self.delta) * self.inputs + self._momentum * self.weights_prev_change
        self.weights -= change
        self.weights_prev_change = change

        bias_change = self.learning_rate * self.delta + self._momentum * self.bias_prev_change
        self.bias -= bias_change
        self.bias_prev_change = bias_change

    def update_learning_rate(self, learning_rate: float) -> None:
        self.learning_rate = float(learning_rate)

    def describe(self, first_index: int = 1) -> List[str]:
        lines = [
            f"  w{first_index + offset}: {float(weight)}"
            for offset, weight in enumerate(self.weights)
        ]
        lines.append(f"  Bias: {self.bias}")
        return lines

    def write(self, writer: TokenWriter) -> None:
        writer.line("[NeuronBegin]")
        writer.line("ActivationFunction:", int(self.activation), indent=2)
        writer.line("Momentum:", self._momentum, indent=2)
        writer.line("LearningRate:", self.learning_rate, indent=2)
        writer.line("Connections:", self.input_size, indent=2)
        writer.line("Weights:", *self.weights, "Bias:", self.bias, indent=2)
        writer.line(
            "WeightsPrevChange:", *self.weights_prev_change, "BiasPrevChange:", self.bias_prev_change,
            indent=2,
        )
        writer.line("Inputs:", *self.inputs, indent=2)
        writer.line("Output:", self.output, indent=2)
        writer.line("Delta:", self.delta, indent=2)
        writer.line("[NeuronEnd]")

    @classmethod
    def read(cls, reader: TokenReader) -> "Neuron":
        reader.expect("[NeuronBegin]")
        activation = reader.read_enum("ActivationFunction:", Activation)
        momentum = reader.read_float("Momentum:")
        learning_rate = reader.read_float("LearningRate:")
        connections = reader.read_count("Connections:")
        weights = reader.read_floats(connections, "Weights:")
        bias = reader.read_float("Bias:")
        neuron = cls(weights, activation, learning_rate, momentum, bias)
        neuron.weights_prev_change = reader.read_floats(connections, "WeightsPrevChange:")
        neuron.bias_prev_change = reader.read_float("BiasPrevChange:")
        neuron.inputs = reader.read_floats(connections, "Inputs:")
        neuron.output = reader.read_float("Output:")
        neuron.delta = reader.read_float("Delta:")
        reader.expect("[NeuronEnd]")
        return neuron


__all__ = ["Neuron", "INIT_LOW", "INIT_HIGH"]
