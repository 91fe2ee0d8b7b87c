"""Dataset registry and readers."""

# Built-in datasets register themselves on import.
from . import csv_generic as _csv_generic  # noqa: F401
from . import mnist as _mnist  # noqa: F401
from . import xor as _xor  # noqa: F401
from .registry import Dataset, available_datasets, get, get_dataset, register_dataset

__all__ = ["Dataset", "available_datasets", "get", "get_dataset", "register_dataset"]
