"""Learning-rate policies and the early-stopping rule used by the estimators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

POLICIES = ("constant", "invscaling", "adaptive")


@dataclass(frozen=True)
class ScheduleDecision:
    stop: bool = False
    learning_rate: Optional[float] = None


@dataclass
class LearningRateSchedule:
    """Per-epoch policy driven by the averaged training error.

    ``constant`` never changes the rate. ``invscaling`` sets
    ``lr = learning_rate_init / (epoch + 1) ** power_t`` after every epoch.
    ``adaptive`` divides the current rate by 5 each time two consecutive
    epochs fail to move the error by at least ``tol``.

    Early stopping keeps the last ``n_iter_no_change + 1`` errors and stops
    once no consecutive pair among them improved by more than ``tol``. It is
    not evaluated under the adaptive policy.
    """

    policy: str = "constant"
    learning_rate_init: float = 0.001
    power_t: float = 0.5
    tol: float = 1e-4
    n_iter_no_change: int = 10
    early_stopping: bool = False
    effective_learning_rate: float = field(init=False)
    history: List[float] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        if self.policy not in POLICIES:
            raise ValueError(f"Unknown learning rate policy '{self.policy}'. Available: {', '.join(POLICIES)}")
        if self.n_iter_no_change < 1:
            raise ValueError("n_iter_no_change must be at least 1")
        self.effective_learning_rate = float(self.learning_rate_init)

    @property
    def tracks_history(self) -> bool:
        return self.early_stopping or self.policy == "adaptive"

    def step(self, epoch: int, error: float) -> ScheduleDecision:
        changed = False
        if self.tracks_history:
            self.history.append(float(error))
            if len(self.history) > self.n_iter_no_change + 1:
                self.history.pop(0)
                if self.policy != "adaptive" and self._converged():
                    return ScheduleDecision(stop=True)

            if self.policy == "adaptive" and len(self.history) >= 3:
                last, prev, before = self.history[-1], self.history[-2], self.history[-3]
                if abs(prev - last) < self.tol and abs(before - prev) < self.tol:
                    self.effective_learning_rate /= 5
                    changed = True

        if self.policy == "invscaling":
            self.effective_learning_rate = self.learning_rate_init / (epoch + 1) ** self.power_t
            changed = True

        return ScheduleDecision(learning_rate=self.effective_learning_rate if changed else None)

    def _converged(self) -> bool:
        return all(
            self.history[i - 1] - self.history[i] <= self.tol for i in range(1, len(self.history))
        )


__all__ = ["LearningRateSchedule", "POLICIES", "ScheduleDecision"]
