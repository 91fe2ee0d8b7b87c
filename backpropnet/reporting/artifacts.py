"""Run artifact helpers."""

from __future__ import annotations

import json
import platform
import subprocess
import time
from importlib import metadata
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..core.network import NeuralNetwork

_TRACKED_PACKAGES = ("numpy", "pandas", "scikit-learn", "structlog")


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):  # pragma: no cover - git may be unavailable
        return "unknown"


def _package_versions() -> Dict[str, str]:
    versions: Dict[str, str] = {}
    for name in _TRACKED_PACKAGES:
        try:
            versions[name] = metadata.version(name)
        except metadata.PackageNotFoundError:
            versions[name] = "missing"
    return versions


def describe_topology(network: NeuralNetwork) -> List[Dict[str, object]]:
    layers: List[Dict[str, object]] = []
    for layer in network.layers:
        entry: Dict[str, object] = {"type": layer.layer_type.name.lower(), "size": layer.size}
        if layer.is_dropout:
            entry["rate"] = layer.dropout_rate
        else:
            entry["activation"] = layer.activation.name.lower()  # type: ignore[attr-defined]
        layers.append(entry)
    return layers


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    network: Optional[NeuralNetwork] = None,
    final_error: Optional[float] = None,
) -> str:
    """Write a manifest JSON file capturing reproducibility metadata."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest: Dict[str, object] = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "dataset": dict(dataset_provenance),
        "environment": {
            "python": platform.python_version(),
            "packages": _package_versions(),
        },
    }
    if network is not None:
        manifest["network"] = {
            "input_size": network.input_size,
            "learning_rate": network.learning_rate,
            "momentum": network.momentum,
            "layers": describe_topology(network),
        }
    if final_error is not None:
        manifest["final_error"] = float(final_error)
    path.write_text(json.dumps(manifest, indent=2))
    return str(path)


__all__ = ["describe_topology", "git_sha", "write_manifest"]
