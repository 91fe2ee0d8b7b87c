"""Label encoding helpers."""

from __future__ import annotations

from typing import Iterable

import numpy as np

from .types import Array


def label_to_one_hot(label: int, min_label: int, max_label: int) -> Array:
    """Encode ``label`` as a ``max_label - min_label + 1`` one-hot vector.

    A label outside ``[min_label, max_label]`` yields the all-zero vector.
    """

    if max_label < min_label:
        raise ValueError(f"Empty label range: [{min_label}, {max_label}]")
    encoded = np.zeros(max_label - min_label + 1, dtype=np.float64)
    if min_label <= label <= max_label:
        encoded[label - min_label] = 1.0
    return encoded


def labels_to_one_hot(labels: Iterable[int], min_label: int, max_label: int) -> Array:
    return np.stack([label_to_one_hot(int(label), min_label, max_label) for label in labels])


__all__ = ["label_to_one_hot", "labels_to_one_hot"]
