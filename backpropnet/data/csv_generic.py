"""Generic CSV loaders for regression and classification tasks."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from ..core.types import Array
from .registry import Dataset, register_dataset

FIXTURE_DIR = Path(__file__).resolve().parent / "_fixtures"


def _load_csv(path: Path, target_col: str) -> Tuple[Array, Array]:
    df = pd.read_csv(path)
    if target_col not in df.columns:
        raise KeyError(f"Target column {target_col!r} not found in CSV")
    y = df.pop(target_col).to_numpy()
    X = df.to_numpy(dtype=np.float64)
    return X, y


def _standardize(X: Array) -> Tuple[Array, Dict[str, List[float]]]:
    mean = X.mean(axis=0)
    std = X.std(axis=0)
    std[std == 0.0] = 1.0
    return (X - mean) / std, {"mean": mean.tolist(), "std": std.tolist()}


@register_dataset("csv_regression")
def load_csv_regression(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "target",
    standardize_inputs: bool = False,
    **_: object,
) -> Dataset:
    """Load a regression dataset from a CSV file."""

    path = Path(csv_path) if csv_path else FIXTURE_DIR / "linear.csv"
    X, y_raw = _load_csv(path, target_col)
    provenance: Dict[str, object] = {"path": str(path), "target_col": target_col}
    if standardize_inputs:
        X, provenance["normalization"] = _standardize(X)
    return Dataset(
        name="csv_regression",
        inputs=X,
        targets=np.asarray(y_raw, dtype=np.float64),
        task_type="regression",
        provenance=provenance,
    )


@register_dataset("csv_classification")
def load_csv_classification(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "species",
    standardize_inputs: bool = False,
    **_: object,
) -> Dataset:
    """Load a classification dataset; class names become labels ``0..k-1``."""

    path = Path(csv_path) if csv_path else FIXTURE_DIR / "iris.csv"
    X, y_raw = _load_csv(path, target_col)
    encoder = LabelEncoder()
    labels = encoder.fit_transform(y_raw).astype(np.int64)
    provenance: Dict[str, object] = {
        "path": str(path),
        "target_col": target_col,
        "classes": [str(c) for c in encoder.classes_],
    }
    if standardize_inputs:
        X, provenance["normalization"] = _standardize(X)
    return Dataset(
        name="csv_classification",
        inputs=X,
        targets=labels,
        task_type="multiclass",
        num_classes=int(len(encoder.classes_)),
        provenance=provenance,
    )


__all__ = ["FIXTURE_DIR", "load_csv_classification", "load_csv_regression"]
