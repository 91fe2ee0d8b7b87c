"""Reader and writer for the IDX binary format used by MNIST.

Headers are big-endian 32-bit integers: a magic number (``0x803`` for
images, ``0x801`` for labels), the item count, then rows and columns for
images. Pixels and labels follow as unsigned bytes. A file whose magic does
not match the requested kind yields an empty result.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import numpy as np

from ..core.types import Array

IMAGES_MAGIC = 0x803
LABELS_MAGIC = 0x801

_HEADER = np.dtype(">i4")


@dataclass(frozen=True)
class IdxAttrs:
    count: int = 0
    rows: int = 0
    cols: int = 0


def _header(raw: bytes, words: int) -> Tuple[int, ...]:
    if len(raw) < words * 4:
        return tuple([0] * words)
    return tuple(int(v) for v in np.frombuffer(raw, dtype=_HEADER, count=words))


def read_idx_images(path: str | Path) -> Tuple[Array, IdxAttrs]:
    """Return ``(images, attrs)`` with one flattened ``uint8`` row per image."""

    path = Path(path)
    raw = path.read_bytes()
    magic, count = _header(raw, 2)
    if magic != IMAGES_MAGIC:
        return np.zeros((0, 0), dtype=np.uint8), IdxAttrs()
    _, _, rows, cols = _header(raw, 4)
    pixels = count * rows * cols
    if count < 0 or rows < 0 or cols < 0 or len(raw) < pixels + 16:
        raise ValueError(f"[Read MNIST] {path} seems corrupted; not large enough.")
    images = np.frombuffer(raw, dtype=np.uint8, count=pixels, offset=16)
    return images.reshape(count, rows * cols).copy(), IdxAttrs(count=count, rows=rows, cols=cols)


def read_idx_labels(path: str | Path) -> Array:
    path = Path(path)
    raw = path.read_bytes()
    magic, count = _header(raw, 2)
    if magic != LABELS_MAGIC:
        return np.zeros(0, dtype=np.uint8)
    if count < 0 or len(raw) < count + 8:
        raise ValueError(f"[Read MNIST] {path} seems corrupted; not large enough.")
    return np.frombuffer(raw, dtype=np.uint8, count=count, offset=8).copy()


def normalize_images(images: Array) -> Array:
    return np.asarray(images, dtype=np.float64) / 255.0


def write_idx_images(path: str | Path, images: Array, rows: int, cols: int) -> Path:
    path = Path(path)
    data = np.asarray(images, dtype=np.uint8).reshape(-1, rows * cols)
    header = np.array([IMAGES_MAGIC, data.shape[0], rows, cols], dtype=_HEADER)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(header.tobytes() + data.tobytes())
    return path


def write_idx_labels(path: str | Path, labels: Array) -> Path:
    path = Path(path)
    data = np.asarray(labels, dtype=np.uint8).reshape(-1)
    header = np.array([LABELS_MAGIC, data.shape[0]], dtype=_HEADER)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(header.tobytes() + data.tobytes())
    return path


__all__ = [
    "IMAGES_MAGIC",
    "LABELS_MAGIC",
    "IdxAttrs",
    "normalize_images",
    "read_idx_images",
    "read_idx_labels",
    "write_idx_images",
    "write_idx_labels",
]
