"""narrasim — narrative entity metrics and day-stepped scenario simulation."""

from narrasim.core.metrics import evaluate
from narrasim.core.monte_carlo import run_monte_carlo
from narrasim.core.simulator import simulate

__all__ = ["evaluate", "run_monte_carlo", "simulate"]
