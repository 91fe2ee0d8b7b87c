"""Activation functions used by the neurons.

Derivatives are evaluated on the *activated* value ``y = f(x)`` because that
is what a neuron keeps after its forward pass.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Dict, Union

import numpy as np

ISRLU_ALPHA = 0.1


class Activation(IntEnum):
    """Activation identifiers; the integer values are written to network files."""

    IDENTITY = 0
    LOGISTIC = 1
    TANH = 2
    RELU = 3
    ISRLU = 4


class ActivationFunction(ABC):
    """Stateless scalar function paired with its derivative."""

    kind: Activation
    label: str

    @abstractmethod
    def calc(self, x: float) -> float:
        """Value of the function at ``x``."""

    @abstractmethod
    def calc_derivative(self, y: float) -> float:
        """Derivative expressed through the activated value ``y``."""


class Identity(ActivationFunction):
    kind = Activation.IDENTITY
    label = "Identity"

    def calc(self, x: float) -> float:
        return x

    def calc_derivative(self, y: float) -> float:
        return 1.0


class Logistic(ActivationFunction):
    kind = Activation.LOGISTIC
    label = "Logistic"

    def calc(self, x: float) -> float:
        # np.exp saturates to inf instead of raising OverflowError.
        with np.errstate(over="ignore"):
            return float(1.0 / (1.0 + np.exp(-x)))

    def calc_derivative(self, y: float) -> float:
        return y * (1.0 - y)


class Tanh(ActivationFunction):
    kind = Activation.TANH
    label = "Tanh"

    def calc(self, x: float) -> float:
        return math.tanh(x)

    def calc_derivative(self, y: float) -> float:
        return 1.0 - y * y


class ReLU(ActivationFunction):
    kind = Activation.RELU
    label = "ReLU"

    def calc(self, x: float) -> float:
        return x if x > 0.0 else 0.0

    def calc_derivative(self, y: float) -> float:
        return 1.0 if y > 0.0 else 0.0


class ISRLU(ActivationFunction):
    """Inverse square root linear unit with ``alpha = 0.1``."""

    kind = Activation.ISRLU
    label = "ISRLU"

    def __init__(self, alpha: float = ISRLU_ALPHA) -> None:
        self.alpha = alpha

    def calc(self, x: float) -> float:
        if x >= 0.0:
            return x
        return x / math.sqrt(1.0 + self.alpha * x * x)

    def calc_derivative(self, y: float) -> float:
        if y >= 0.0:
            return 1.0
        return (1.0 / math.sqrt(1.0 + self.alpha * y * y)) ** 3


_FUNCTIONS: Dict[Activation, ActivationFunction] = {
    fn.kind: fn for fn in (Identity(), Logistic(), Tanh(), ReLU(), ISRLU())
}

ActivationSpec = Union[Activation, int, str]


def resolve_activation(spec: ActivationSpec) -> Activation:
    """Normalise an enum member, persisted integer id, or case-insensitive name."""

    if isinstance(spec, Activation):
        return spec
    if isinstance(spec, str):
        try:
            return Activation[spec.strip().upper()]
        except KeyError:
            available = ", ".join(member.name.lower() for member in Activation)
            raise ValueError(
                f"Unknown activation '{spec}'. Available: {available}"
            ) from None
    try:
        return Activation(int(spec))
    except (TypeError, ValueError):
        raise ValueError(f"Unknown activation id: {spec!r}") from None


def build_activation(spec: ActivationSpec) -> ActivationFunction:
    return _FUNCTIONS[resolve_activation(spec)]


__all__ = [
    "Activation",
    "ActivationFunction",
    "ActivationSpec",
    "ISRLU_ALPHA",
    "Identity",
    "Logistic",
    "Tanh",
    "ReLU",
    "ISRLU",
    "build_activation",
    "resolve_activation",
]
