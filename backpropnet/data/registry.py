"""Dataset registry and the in-memory dataset contract."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping, Optional, Tuple

import numpy as np

from ..core.types import Array

TASK_TYPES = ("regression", "multiclass")


@dataclass(frozen=True)
class Dataset:
    """Fully materialised dataset.

    Attributes
    ----------
    inputs:
        ``[n_samples, d_in]`` float64 matrix.
    targets:
        Regression values (``[n]`` or ``[n, d_out]``) or one label per sample
        for ``multiclass``.
    provenance:
        Free-form metadata recorded in the run manifest.
    """

    name: str
    inputs: Array
    targets: Array
    task_type: str
    num_classes: Optional[int] = None
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def d_in(self) -> int:
        return int(self.inputs.shape[1]) if self.inputs.ndim == 2 else 0

    def __len__(self) -> int:
        return int(self.inputs.shape[0])

    def split(self, test_fraction: float, seed: int = 0) -> Tuple["Dataset", "Dataset"]:
        """Deterministically shuffle and cut into ``(train, test)``."""

        if not 0.0 <= test_fraction < 1.0:
            raise ValueError(f"test_fraction must lie in [0, 1), got {test_fraction}")
        order = np.random.default_rng(seed).permutation(len(self))
        n_test = int(round(len(self) * test_fraction))
        test_idx, train_idx = order[:n_test], order[n_test:]
        return self._subset(train_idx, "train"), self._subset(test_idx, "test")

    def _subset(self, indices: Array, split: str) -> "Dataset":
        provenance = dict(self.provenance)
        provenance["split"] = split
        return Dataset(
            name=self.name,
            inputs=self.inputs[indices],
            targets=self.targets[indices],
            task_type=self.task_type,
            num_classes=self.num_classes,
            provenance=provenance,
        )


DatasetFactory = Callable[..., Dataset]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    Works as a decorator::

        @register_dataset("xor")
        def load_xor(**options):
            ...

    or directly with ``register_dataset("xor", load_xor)``.
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(name: str, **options: Any) -> Dataset:
    if name not in _REGISTRY:
        raise KeyError(f"Unknown dataset: {name}. Available: {', '.join(available_datasets())}")
    dataset = _REGISTRY[name](**options)
    _validate(dataset)
    return dataset


def get(name: str, **options: Any) -> Dataset:
    """Alias for :func:`get_dataset`."""

    return get_dataset(name, **options)


def available_datasets() -> Iterable[str]:
    return sorted(_REGISTRY)


def _validate(dataset: Dataset) -> None:
    if dataset.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {dataset.task_type}")
    if dataset.task_type == "multiclass" and dataset.num_classes is None:
        raise ValueError("Multiclass datasets must define num_classes")
    if dataset.inputs.ndim != 2:
        raise ValueError(f"Dataset inputs must be 2-D, got shape {dataset.inputs.shape}")
    if dataset.targets.shape[0] != dataset.inputs.shape[0]:
        raise ValueError(
            f"Dataset {dataset.name!r} has {dataset.inputs.shape[0]} inputs "
            f"but {dataset.targets.shape[0]} targets"
        )


__all__ = [
    "Dataset",
    "TASK_TYPES",
    "available_datasets",
    "get",
    "get_dataset",
    "register_dataset",
]
