"""Core typing contracts for backpropnet."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Sequence, Union

import numpy as np

Array = np.ndarray
Vector = Union[Sequence[float], Array]
Matrix = Union[Sequence[Sequence[float]], Array]


class LayerType(IntEnum):
    """Layer variants; the integer values are written to network files."""

    HIDDEN = 0
    DROPOUT = 1
    OUTPUT_CLASSIFICATION = 2
    OUTPUT_REGRESSION = 3

    @property
    def is_output(self) -> bool:
        return self in (LayerType.OUTPUT_CLASSIFICATION, LayerType.OUTPUT_REGRESSION)


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :func:`backpropnet.training.pipelines.run_pipeline`."""

    epochs: int
    final_error: float
    metrics_path: str
    manifest_path: str
    network_path: str = ""
