"""MNIST registry entry over a pair of IDX files."""

from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np
import structlog

from .idx import normalize_images, read_idx_images, read_idx_labels, write_idx_images, write_idx_labels
from .registry import Dataset, register_dataset

logger = structlog.get_logger(__name__)

_FIXTURE_IMAGES = "fixture-images-idx3-ubyte"
_FIXTURE_LABELS = "fixture-labels-idx1-ubyte"


def build_offline_fixture(directory: str | Path, count: int = 64, side: int = 28) -> Tuple[Path, Path]:
    """Write a deterministic MNIST-shaped IDX pair into ``directory``.

    Pixels come from modular arithmetic on ``np.arange`` so the bytes are
    identical across platforms and NumPy releases.
    """

    directory = Path(directory)
    images = np.arange(count * side * side, dtype=np.uint32).reshape(count, side * side) % 256
    labels = np.arange(count, dtype=np.uint8) % 10
    images_path = write_idx_images(directory / _FIXTURE_IMAGES, images.astype(np.uint8), side, side)
    labels_path = write_idx_labels(directory / _FIXTURE_LABELS, labels)
    return images_path, labels_path


@register_dataset("mnist")
def load_mnist(
    *,
    images_path: str | Path | None = None,
    labels_path: str | Path | None = None,
    max_items: int | None = None,
    normalize: bool = True,
    cache_dir: str | Path | None = None,
    **_: object,
) -> Dataset:
    if images_path is None or labels_path is None:
        fixture_dir = Path(cache_dir) if cache_dir is not None else Path(".cache/backpropnet")
        images_path, labels_path = build_offline_fixture(fixture_dir)
        logger.info("mnist_fixture_built", directory=str(fixture_dir))

    images, attrs = read_idx_images(images_path)
    labels = read_idx_labels(labels_path)
    if images.shape[0] != labels.shape[0]:
        raise ValueError(
            f"MNIST images and labels disagree: {images.shape[0]} images, {labels.shape[0]} labels"
        )
    if max_items is not None:
        images, labels = images[:max_items], labels[:max_items]

    inputs = normalize_images(images) if normalize else images.astype(np.float64)
    return Dataset(
        name="mnist",
        inputs=inputs,
        targets=labels.astype(np.int64),
        task_type="multiclass",
        num_classes=10,
        provenance={
            "images_path": str(images_path),
            "labels_path": str(labels_path),
            "rows": attrs.rows,
            "cols": attrs.cols,
            "count": int(inputs.shape[0]),
            "normalize": normalize,
        },
    )


__all__ = ["build_offline_fixture", "load_mnist"]
