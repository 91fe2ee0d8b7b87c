"""Headless loss-curve plotting."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Optional, Tuple

import structlog

logger = structlog.get_logger(__name__)


class PlotAdapter:
    """Collect the per-epoch training error and draw it on :meth:`close`."""

    def __init__(self, run_dir: str | Path, enable_plots: bool = False, filename: str = "loss.png"):
        self.enable_plots = enable_plots
        self.run_dir = Path(run_dir)
        self.filename = filename
        self._history: List[Tuple[int, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    def on_epoch(self, epoch: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        self._history.append((int(epoch), float(metrics.get("loss", 0.0))))

    __call__ = on_epoch

    def close(self) -> Optional[Path]:
        if not self.enable_plots or not self._history:
            return None
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        epochs, losses = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(epochs, losses)
        ax.set_xlabel("Epoch")
        ax.set_ylabel("Error")
        ax.set_yscale("log" if min(losses) > 0.0 else "linear")
        ax.set_title("Training error")
        plot_path = self.run_dir / self.filename
        fig.savefig(plot_path)
        plt.close(fig)
        logger.info("plot_written", path=str(plot_path), points=len(self._history))
        return plot_path


__all__ = ["PlotAdapter"]
