"""Multi-layer perceptron estimators trained sample by sample.

The estimators mirror the familiar scikit-learn constructor surface and
build a :class:`~backpropnet.core.network.NeuralNetwork` on ``fit``. Each
epoch walks the samples in order; backpropagation is run without an update
for every sample and the weights move once per batch.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import structlog
from sklearn.base import BaseEstimator, ClassifierMixin, RegressorMixin
from sklearn.preprocessing import LabelEncoder

from ..core.activations import resolve_activation
from ..core.encoding import labels_to_one_hot
from ..core.network import NeuralNetwork
from ..core.types import Array
from .schedules import LearningRateSchedule

logger = structlog.get_logger(__name__)


def _as_matrix(X: Any) -> Array:
    rows = [np.asarray(row, dtype=np.float64).reshape(-1) for row in X]
    if not rows:
        return np.zeros((0, 0), dtype=np.float64)
    width = rows[0].shape[0]
    for index, row in enumerate(rows[1:], start=1):
        if row.shape[0] != width:
            raise ValueError(
                f"All inputs do not have the same size: first {width} {index}th {row.shape[0]}."
            )
    return np.vstack(rows)


class _BaseMLP(BaseEstimator, ABC):
    """Shared fit loop for :class:`MLPRegressor` and :class:`MLPClassifier`."""

    def __init__(
        self,
        hidden_layer_sizes: Sequence[int] = (100,),
        activation: str = "relu",
        batch_size: Optional[int] = None,
        learning_rate: str = "constant",
        learning_rate_init: float = 0.001,
        power_t: float = 0.5,
        max_iter: int = 200,
        random_state: Optional[int] = None,
        tol: float = 1e-4,
        momentum: float = 0.9,
        early_stopping: bool = False,
        n_iter_no_change: int = 10,
        dropout: float = 0.0,
        verbose: bool = False,
        callbacks: Sequence[object] = (),
    ) -> None:
        self.hidden_layer_sizes = hidden_layer_sizes
        self.activation = activation
        self.batch_size = batch_size
        self.learning_rate = learning_rate
        self.learning_rate_init = learning_rate_init
        self.power_t = power_t
        self.max_iter = max_iter
        self.random_state = random_state
        self.tol = tol
        self.momentum = momentum
        self.early_stopping = early_stopping
        self.n_iter_no_change = n_iter_no_change
        self.dropout = dropout
        self.verbose = verbose
        self.callbacks = callbacks

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------
    @abstractmethod
    def _prepare_targets(self, y: Any) -> Array:
        """Validate ``y`` and return the per-sample target rows."""

    @abstractmethod
    def _add_output_layer(self, network: NeuralNetwork, width: int) -> None:
        """Append the task-specific output layer to ``network``."""

    # ------------------------------------------------------------------
    def _log(self, event: str, **fields: Any) -> None:
        if self.verbose:
            logger.info(event, **fields)

    def _build_network(self, input_size: int, output_width: int) -> NeuralNetwork:
        activation = resolve_activation(self.activation)
        network = NeuralNetwork(
            input_size,
            self.learning_rate_init,
            self.momentum,
            seed=self.random_state,
        )
        for size in self.hidden_layer_sizes:
            network.add_hidden_layer(int(size), activation)
            if self.dropout:
                network.add_dropout_layer(self.dropout)
        self._add_output_layer(network, output_width)
        self._log("network_built", input_size=input_size, layers=len(network), output_size=output_width)
        return network

    def fit(self, X: Any, y: Any) -> "_BaseMLP":
        inputs = _as_matrix(X)
        self.loss_curve_: List[float] = []
        self.n_iter_ = 0
        if inputs.shape[0] == 0:
            logger.warning("fit_skipped", reason="empty input")
            return self
        y_values = np.asarray(y)
        if y_values.shape[0] != inputs.shape[0]:
            raise ValueError(
                f"Input and output size are not consistent: input {inputs.shape[0]} output {y_values.shape[0]}."
            )

        targets = self._prepare_targets(y_values)
        network = self._build_network(inputs.shape[1], targets.shape[1])
        self.network_ = network
        schedule = LearningRateSchedule(
            policy=self.learning_rate,
            learning_rate_init=self.learning_rate_init,
            power_t=self.power_t,
            tol=self.tol,
            n_iter_no_change=self.n_iter_no_change,
            early_stopping=self.early_stopping,
        )

        count = inputs.shape[0]
        # No batch size means online learning.
        batch_size = 1 if self.batch_size is None else int(self.batch_size)
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

        self._log("fit_started", samples=count, max_iter=self.max_iter, batch_size=batch_size)
        started = time.perf_counter()
        error = 0.0
        for epoch in range(self.max_iter):
            error = 0.0
            for start in range(0, count, batch_size):
                for index in range(start, min(start + batch_size, count)):
                    network.propagate_forward(inputs[index])
                    error += network.calc_error(targets[index])
                    network.propagate_backward(targets[index], update=False)
                network.update_weights()
            error /= count
            self.loss_curve_.append(error)
            self.n_iter_ = epoch + 1
            self._emit_epoch(epoch, {"loss": error, "learning_rate": network.learning_rate})

            decision = schedule.step(epoch, error)
            if decision.stop:
                self._log("early_stop", epoch=epoch, tol=self.tol)
                break
            if decision.learning_rate is not None:
                network.update_learning_rate(decision.learning_rate)

        self._log(
            "fit_completed",
            final_error=error,
            epochs=self.n_iter_,
            learning_rate=network.learning_rate,
            elapsed_ms=round((time.perf_counter() - started) * 1000.0, 3),
        )
        return self

    def _emit_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)

    def _check_fitted(self) -> NeuralNetwork:
        network = getattr(self, "network_", None)
        if network is None:
            raise RuntimeError("Use fit before predict.")
        return network

    def _forward_all(self, X: Any) -> Tuple[NeuralNetwork, Array]:
        network = self._check_fitted()
        inputs = _as_matrix(np.atleast_2d(np.asarray(X, dtype=np.float64)))
        outputs = [network.predict(row) for row in inputs]
        return network, np.vstack(outputs) if outputs else np.zeros((0, network.output_size))

    def inspect(self) -> str:
        network = getattr(self, "network_", None)
        return network.inspect() if network is not None else ""

    def save(self, path: Union[str, Path]) -> Path:
        return self._check_fitted().save_to_file(path)


class MLPRegressor(RegressorMixin, _BaseMLP):
    """Regressor ending in an output regression layer using ``activation``."""

    def _prepare_targets(self, y: Any) -> Array:
        targets = np.asarray(y, dtype=np.float64)
        if targets.ndim == 1:
            targets = targets.reshape(-1, 1)
        return targets

    def _add_output_layer(self, network: NeuralNetwork, width: int) -> None:
        network.add_output_regression_layer(width, resolve_activation(self.activation))

    def predict(self, X: Any) -> Array:
        _, outputs = self._forward_all(X)
        if outputs.shape[1] == 1:
            return outputs[:, 0]
        return outputs


class MLPClassifier(ClassifierMixin, _BaseMLP):
    """Classifier ending in a softmax layer over the observed label range.

    Integer labels span ``min(y)..max(y)`` inclusive, so gaps in the range
    still get an output neuron. Any other label type is first encoded with
    :class:`sklearn.preprocessing.LabelEncoder`.
    """

    def _prepare_targets(self, y: Any) -> Array:
        labels = np.asarray(y).reshape(-1)
        if np.issubdtype(labels.dtype, np.integer):
            low, high = int(labels.min()), int(labels.max())
            codes = labels.astype(np.int64)
            self.classes_ = np.arange(low, high + 1)
            self._encoder = None
        else:
            self._encoder = LabelEncoder()
            codes = self._encoder.fit_transform(labels)
            self.classes_ = self._encoder.classes_
            low, high = 0, len(self.classes_) - 1
        self.label_range_ = (low, high)
        return labels_to_one_hot(codes, low, high)

    def _add_output_layer(self, network: NeuralNetwork, width: int) -> None:
        network.add_output_classification_layer(width)

    def predict_proba(self, X: Any) -> Array:
        _, outputs = self._forward_all(X)
        return outputs

    def predict(self, X: Any) -> Array:
        proba = self.predict_proba(X)
        return self.classes_[np.argmax(proba, axis=1)]


__all__ = ["MLPClassifier", "MLPRegressor"]
