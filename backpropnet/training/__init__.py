"""Estimators, learning-rate schedules and preset-driven runs."""

from .pipelines import load_preset, presets, run_pipeline
from .schedules import LearningRateSchedule
from .trainer import MLPClassifier, MLPRegressor

__all__ = [
    "LearningRateSchedule",
    "MLPClassifier",
    "MLPRegressor",
    "load_preset",
    "presets",
    "run_pipeline",
]
