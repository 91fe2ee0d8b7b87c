"""The four XOR pairs."""

from __future__ import annotations

import numpy as np

from .registry import Dataset, register_dataset

XOR_INPUTS = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
XOR_TARGETS = np.array([0.0, 1.0, 1.0, 0.0])


@register_dataset("xor")
def load_xor(*, as_classes: bool = False, repeat: int = 1, **_: object) -> Dataset:
    """Return XOR as regression targets, or as integer labels with ``as_classes``."""

    if repeat < 1:
        raise ValueError(f"repeat must be at least 1, got {repeat}")
    inputs = np.tile(XOR_INPUTS, (repeat, 1))
    targets = np.tile(XOR_TARGETS, repeat)
    if as_classes:
        return Dataset(
            name="xor",
            inputs=inputs,
            targets=targets.astype(np.int64),
            task_type="multiclass",
            num_classes=2,
            provenance={"source": "builtin", "repeat": repeat, "as_classes": True},
        )
    return Dataset(
        name="xor",
        inputs=inputs,
        targets=targets,
        task_type="regression",
        provenance={"source": "builtin", "repeat": repeat, "as_classes": False},
    )


__all__ = ["XOR_INPUTS", "XOR_TARGETS", "load_xor"]
