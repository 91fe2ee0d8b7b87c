"""Command line entry point for backpropnet training runs."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Iterable

from backpropnet.core.errors import NetworkError
from backpropnet.core.network import NeuralNetwork
from backpropnet.data import registry
from backpropnet.reporting.logs import configure_logging
from backpropnet.training import pipelines


def _format_result(result) -> str:
    payload = {
        "epochs": result.epochs,
        "final_error": result.final_error,
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
    }
    if result.network_path:
        payload["network"] = result.network_path
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="xor-regressor",
        help="Preset configuration to execute",
    )
    parser.add_argument("--config", type=Path, help="Optional JSON/YAML config override")
    parser.add_argument("--enable-plots", action="store_true", help="Write loss.png into the run directory")
    parser.add_argument(
        "--dataset",
        choices=sorted(registry.available_datasets()),
        help="Override the dataset used by the run",
    )
    parser.add_argument("--csv-path", help="Path to a CSV file for csv_* datasets")
    parser.add_argument("--target-col", help="Target column name for CSV datasets")
    parser.add_argument("--images-path", help="IDX image file for the mnist dataset")
    parser.add_argument("--labels-path", help="IDX label file for the mnist dataset")
    parser.add_argument("--seed", type=int, help="Seed for weight initialisation and dropout")
    parser.add_argument("--epochs", type=int, help="Maximum number of epochs")
    parser.add_argument("--lr", type=float, help="Initial learning rate")
    parser.add_argument("--run-dir", type=Path, help="Directory receiving the run artifacts")
    parser.add_argument("--list-presets", action="store_true", help="List available presets and exit")
    parser.add_argument("--list-datasets", action="store_true", help="List registered datasets and exit")
    parser.add_argument("--inspect", type=Path, help="Print a saved network file and exit")
    parser.add_argument("--dump-config", type=Path, help="Dump the resolved config to a JSON file")
    parser.add_argument("--log-level", default="INFO", help="structlog level (DEBUG, INFO, WARNING)")
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        import yaml

        return yaml.safe_load(text) or {}
    return json.loads(text)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging(args.log_level)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    if args.list_datasets:
        for name in registry.available_datasets():
            print(name)
        raise SystemExit(0)

    if args.inspect:
        try:
            network = NeuralNetwork.load_from_file(args.inspect)
        except NetworkError as exc:
            raise SystemExit(str(exc)) from None
        print(network.inspect(), end="")
        raise SystemExit(0)

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))

    if args.config:
        override = _load_override(args.config)
        if {"data", "model", "train"} <= set(override.keys()):
            config = json.loads(json.dumps(override))
        else:
            config = _merge(config, override)

    train_cfg = config.setdefault("train", {})
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.seed is not None:
        train_cfg["seed"] = int(args.seed)
    if args.epochs is not None:
        train_cfg["epochs"] = int(args.epochs)
    if args.lr is not None:
        train_cfg["lr"] = float(args.lr)
    if args.run_dir is not None:
        train_cfg["run_dir"] = str(args.run_dir)

    if args.dataset:
        opts: dict = {}
        if args.dataset in {"csv_regression", "csv_classification"}:
            if args.csv_path:
                opts["csv_path"] = args.csv_path
            if args.target_col:
                opts["target_col"] = args.target_col
        if args.dataset == "mnist":
            if args.images_path:
                opts["images_path"] = args.images_path
            if args.labels_path:
                opts["labels_path"] = args.labels_path
        config["data"] = {"name": args.dataset, "options": opts}
        # The preset's model kind may not fit the new dataset.
        config.setdefault("model", {}).pop("kind", None)

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    result = pipelines.run_pipeline(config)
    print(_format_result(result))


if __name__ == "__main__":
    main()
