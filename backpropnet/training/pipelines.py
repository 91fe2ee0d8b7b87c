"""Preset-driven training runs that leave metrics, a manifest and the network on disk."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Mapping

import numpy as np
import structlog

from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from .trainer import MLPClassifier, MLPRegressor

logger = structlog.get_logger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "xor-regressor": {
        "data": {"name": "xor", "options": {}},
        "model": {"kind": "regressor", "hidden": [5], "activation": "logistic"},
        "train": {
            "epochs": 2000,
            "lr": 0.5,
            "momentum": 0.9,
            "batch_size": None,
            "seed": 10,
            "run_dir": "runs/xor-regressor",
            "enable_plots": False,
        },
    },
    "xor-classifier": {
        "data": {"name": "xor", "options": {"as_classes": True}},
        "model": {"kind": "classifier", "hidden": [4], "activation": "tanh"},
        "train": {
            "epochs": 500,
            "lr": 0.1,
            "momentum": 0.5,
            "batch_size": None,
            "seed": 3,
            "run_dir": "runs/xor-classifier",
            "enable_plots": False,
        },
    },
    "iris-classifier": {
        "data": {"name": "csv_classification", "options": {"standardize_inputs": True}},
        "model": {"kind": "classifier", "hidden": [3, 3], "activation": "logistic"},
        "train": {
            "epochs": 300,
            "lr": 0.1,
            "momentum": 0.0,
            "batch_size": None,
            "seed": 10,
            "test_fraction": 0.2,
            "run_dir": "runs/iris-classifier",
            "enable_plots": False,
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None
_REQUIRED_SECTIONS = {"data", "model", "train"}


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        import yaml

        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        found: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = _REQUIRED_SECTIONS - set(data)
                if missing:
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: {', '.join(sorted(missing))}"
                    )
                found[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = found
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError:
        raise KeyError(f"Unknown preset: {name}") from None


def build_estimator(model_cfg: Mapping[str, Any], train_cfg: Mapping[str, Any], task_type: str, callbacks: List[object]):
    kind = str(model_cfg.get("kind", "classifier" if task_type == "multiclass" else "regressor"))
    if kind not in {"classifier", "regressor"}:
        raise ValueError(f"Unknown model kind: {kind}")
    if kind == "classifier" and task_type != "multiclass":
        raise ValueError("A classifier needs a multiclass dataset")
    batch_size = train_cfg.get("batch_size")
    params = dict(
        hidden_layer_sizes=tuple(int(h) for h in model_cfg.get("hidden", [100])),
        activation=str(model_cfg.get("activation", "relu")),
        dropout=float(model_cfg.get("dropout", 0.0)),
        batch_size=int(batch_size) if batch_size is not None else None,
        learning_rate=str(train_cfg.get("learning_rate", "constant")),
        learning_rate_init=float(train_cfg.get("lr", 0.001)),
        power_t=float(train_cfg.get("power_t", 0.5)),
        max_iter=int(train_cfg.get("epochs", 200)),
        random_state=train_cfg.get("seed"),
        tol=float(train_cfg.get("tol", 1e-4)),
        momentum=float(train_cfg.get("momentum", 0.9)),
        early_stopping=bool(train_cfg.get("early_stopping", False)),
        n_iter_no_change=int(train_cfg.get("n_iter_no_change", 10)),
        verbose=bool(train_cfg.get("verbose", False)),
        callbacks=tuple(callbacks),
    )
    if kind == "classifier":
        return MLPClassifier(**params)
    return MLPRegressor(**params)


class _MetricsCapture:
    def __init__(self) -> None:
        self.history: List[tuple[int, Mapping[str, float]]] = []
        self.last: Mapping[str, float] = {}

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        payload = {k: float(v) for k, v in metrics.items()}
        self.history.append((int(epoch), payload))
        self.last = payload


def _evaluate(estimator, inputs: np.ndarray, targets: np.ndarray, task_type: str) -> Dict[str, float]:
    if inputs.shape[0] == 0:
        return {}
    predictions = estimator.predict(inputs)
    if task_type == "multiclass":
        return {"accuracy": float(np.mean(predictions == targets))}
    diff = np.asarray(predictions, dtype=np.float64).reshape(targets.shape) - targets
    return {"mse": float(np.mean(diff * diff))}


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if train_cfg.get("run_dir"):
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    dataset = registry.get(str(data_cfg["name"]), **dict(data_cfg.get("options") or {}))
    seed = int(train_cfg.get("seed", 0) or 0)
    test_fraction = float(train_cfg.get("test_fraction", 0.0))
    train_set, test_set = dataset.split(test_fraction, seed=seed) if test_fraction else (dataset, None)

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    jsonl = JsonlSink(run_dir / "metrics.jsonl", split="train", seed=seed)
    csv_sink = CsvSink(run_dir / "metrics.csv", split="train")
    plots = PlotAdapter(run_dir, enable_plots=bool(train_cfg.get("enable_plots", False)))
    capture = _MetricsCapture()
    estimator = build_estimator(model_cfg, train_cfg, dataset.task_type, [jsonl, csv_sink, plots, capture])

    logger.info(
        "run_started",
        dataset=dataset.name,
        samples=len(train_set),
        d_in=dataset.d_in,
        kind=type(estimator).__name__,
        hidden=list(estimator.hidden_layer_sizes),
        epochs=estimator.max_iter,
        run_dir=str(run_dir),
    )
    estimator.fit(train_set.inputs, train_set.targets)
    plots.close()

    final_error = float(capture.last.get("loss", float("nan")))
    evaluation: Dict[str, Dict[str, float]] = {
        "train": _evaluate(estimator, train_set.inputs, train_set.targets, dataset.task_type)
    }
    if test_set is not None:
        evaluation["test"] = _evaluate(estimator, test_set.inputs, test_set.targets, dataset.task_type)
    (run_dir / "evaluation.json").write_text(json.dumps(evaluation, indent=2))

    network_path = ""
    network = getattr(estimator, "network_", None)
    if network is not None and train_cfg.get("save_network", True):
        network_path = str(network.save_to_file(run_dir / "network.txt"))

    manifest = write_manifest(
        run_dir / "manifest.json",
        config=json.loads(json.dumps(config)),
        dataset_provenance=dataset.provenance,
        network=network,
        final_error=final_error if capture.last else None,
    )
    logger.info("run_completed", epochs=estimator.n_iter_, final_error=final_error, **_flatten(evaluation))
    return RunResult(
        epochs=int(estimator.n_iter_),
        final_error=final_error,
        metrics_path=str(jsonl.path),
        manifest_path=manifest,
        network_path=network_path,
    )


def _flatten(evaluation: Mapping[str, Mapping[str, float]]) -> Dict[str, float]:
    return {f"{split}_{name}": value for split, metrics in evaluation.items() for name, value in metrics.items()}


__all__ = ["build_estimator", "load_preset", "presets", "run_pipeline"]
