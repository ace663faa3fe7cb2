"""Exposure Process — one simulated day of exposure, capacity, moisture and wear."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from narrasim.core.metrics import EPS, clamp, clamp01
from narrasim.core.model_spec import NoiseConfig, PolicyConfig, ProcessConstants

BASELINE_CAPACITY = 100.0
MAX_LEVEL = 1e9  # ceiling for unbounded stocks (E, H, Mw, Topo, Cvar)


@dataclass
class SimulationState:
    """Everything one run mutates. Owned by exactly one run."""

    E: float = 60.0
    A: float = 100.0
    H: float = 0.5
    R: float = 0.85
    Mw: float = 0.3
    Topo: float = 0.2
    Cvar: float = 0.3
    v: float = 20.0
    q: float = 0.6
    rho: float = 0.985
    exergy: float = 0.8
    infra: float = 0.4
    hazard: float = 0.7
    causal: float = 0.2
    pid_integral: float = 0.0
    pid_prev_error: float = 0.0
    quarantined: bool = False
    expiries: dict[int, float] = field(default_factory=dict)  # day -> Cvar to remove


def finite(x: float, fallback: float = 0.0) -> float:
    return x if math.isfinite(x) else fallback


def level(x: float) -> float:
    """Non-negative, finite stock."""
    return clamp(finite(x), 0.0, MAX_LEVEL)


class DoseController:
    """PID on e = 1 - dose acting on capacity A.

    The integrator only accumulates outside the settle band, and the output
    is limited to du_max per day.
    """

    def __init__(self, policy: PolicyConfig):
        self.policy = policy
        self.A_min, self.A_max = sorted(policy.A_bounds)

    def bound(self, A: float) -> float:
        return clamp(finite(A, self.A_min), self.A_min, self.A_max)

    def update(self, state: SimulationState, dose: float) -> float:
        pol = self.policy
        e = 1.0 - dose
        if abs(e) > pol.settle_band:
            state.pid_integral = finite(state.pid_integral + e)
        D = e - state.pid_prev_error
        state.pid_prev_error = e

        u = clamp(finite(pol.kp * e + pol.ki * state.pid_integral + pol.kd * D), -pol.du_max, pol.du_max)
        # Lower capacity raises dose.
        state.A = self.bound(state.A - u)
        return u


class ExposureProcess:
    def __init__(
        self,
        constants: ProcessConstants,
        controller: DoseController,
        noise: NoiseConfig | None,
        seed: int,
    ):
        self.k = constants
        self.controller = controller
        self.sigmaE = noise.sigmaE if noise else 0.0
        self.sigmaA = noise.sigmaA if noise else 0.0
        self.rng = np.random.default_rng(seed)

    def _jitter(self) -> float:
        return float(self.rng.random()) - 0.5

    def step(self, state: SimulationState) -> float:
        """Advance `state` by one day. Returns the exposure inflow used."""
        k = self.k
        jitter_E, jitter_A = self._jitter(), self._jitter()

        inflow = 0.0 if state.quarantined else state.v * state.q
        state.E = level(state.rho * state.E + inflow + self.sigmaE * jitter_E)

        A = state.A - k.kA_decay * (state.A - BASELINE_CAPACITY) + self.sigmaA * jitter_A
        state.A = self.controller.bound(A + k.kA_moisture * state.H)

        # Moisture refills fastest when dose sits near 1.
        near_target = 1.0 - abs(1.0 - state.E / max(1.0, state.A))
        state.H = level(state.H - k.kH_leak * state.H + k.kH_gain * near_target)

        dose = state.E / max(EPS, state.A)
        self.controller.update(state, dose)

        state.R = clamp01(finite(state.R - k.kR_wear * abs(1.0 - dose)))

        retain = clamp01(1.0 - k.kC_decay)
        state.Cvar = level(state.Cvar * retain)
        for day in state.expiries:
            state.expiries[day] *= retain

        return inflow
