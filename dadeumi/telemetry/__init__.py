"""Run telemetry: structured logging and cost accounting."""

from .cost_tracker import CostTracker
from .logger import RunLogger

__all__ = ["CostTracker", "RunLogger"]
