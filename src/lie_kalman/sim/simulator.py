"""Deterministic simulator for the differential-drive self-calibration scenario.

The simulator provides:
- ground truth on ``Bundle(SE2, Rn(3))`` driven by noiseless wheel increments
- noisy wheel increments for the filters (white noise on the wheel rates)
- Cartesian landmark measurements and GPS fixes at their own rates
- an optional step change of the true calibration (the "heavy load" event)

All randomness comes from one seeded ``numpy.random.Generator``.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from lie_kalman.lie.bundle import Bundle
from lie_kalman.lie.rn import Rn
from lie_kalman.lie.se2 import SE2
from lie_kalman.models.measurement import BundleMeasurementAdapter, GPSMeasurementModel
from lie_kalman.models.motion import DiffDriveSystemModel
from lie_kalman.types import Kinematics, SimulationStep


@dataclass(slots=True)
class ScenarioConfig:
    """Configuration for :class:`DiffDriveSimulator`.

    Attributes
    ----------
    dt:
        Control period in seconds.
    duration_s:
        Scenario length in seconds.
    wheel_rates:
        Nominal wheel angular rates ``(left, right)`` in rad/s.
    var_wheel:
        Wheel-rate noise variance in ``(rad/s)^2``. The sampled rate noise
        has standard deviation ``sqrt(var_wheel / dt)``. The filters use
        ``diag(var_wheel, var_wheel)`` as their control covariance.
    landmark_sigma:
        Standard deviation of each Cartesian landmark coordinate in meters.
    var_gps:
        Variance of each GPS coordinate in square meters.
    landmark_rate_hz, gps_rate_hz:
        Measurement rates. Each must divide the control rate.
    kinematics:
        Nominal ``(left_radius, right_radius, wheel_separation)``.
    initial_calibration:
        True calibration factors at start.
    calibration_change_s:
        Time after which the true calibration becomes ``changed_calibration``;
        ``None`` keeps it constant.
    initial_covariance_diag:
        Diagonal of the filters' initial covariance, pose then calibration.
    """

    dt: float = 0.01
    duration_s: float = 240.0
    wheel_rates: tuple[float, float] = (0.5, 0.35)
    var_wheel: float = 9e-5
    landmark_sigma: float = 0.01
    var_gps: float = 6e-3
    landmark_rate_hz: float = 50.0
    gps_rate_hz: float = 10.0
    kinematics: tuple[float, float, float] = (0.15, 0.15, 0.4)
    initial_calibration: tuple[float, float, float] = (1.0, 1.0, 1.0)
    calibration_change_s: float | None = 120.0
    changed_calibration: tuple[float, float, float] = (0.85, 0.85, 1.0)
    initial_covariance_diag: tuple[float, ...] = (0.1, 0.1, 0.17, 1e-5, 1e-5, 1e-5)

    def __post_init__(self) -> None:
        if not np.isfinite(self.dt) or self.dt <= 0.0:
            raise ValueError(f"ScenarioConfig.dt must be positive, got {self.dt}")
        if self.duration_s < 0.0:
            raise ValueError(f"ScenarioConfig.duration_s must be non-negative, got {self.duration_s}")
        self._period_steps(self.landmark_rate_hz)
        self._period_steps(self.gps_rate_hz)

    def _period_steps(self, rate_hz: float) -> int:
        period = 1.0 / (rate_hz * self.dt)
        steps = int(round(period))
        if steps < 1 or not np.isclose(period, steps):
            raise ValueError(f"Measurement rate {rate_hz} Hz does not divide the control rate {1.0 / self.dt} Hz")
        return steps

    @property
    def steps(self) -> int:
        return int(round(self.duration_s / self.dt))

    @property
    def landmark_period_steps(self) -> int:
        return self._period_steps(self.landmark_rate_hz)

    @property
    def gps_period_steps(self) -> int:
        return self._period_steps(self.gps_rate_hz)

    @property
    def control_cov(self) -> np.ndarray:
        return np.diag([self.var_wheel, self.var_wheel])

    @property
    def landmark_cov(self) -> np.ndarray:
        return np.diag([self.landmark_sigma**2, self.landmark_sigma**2])

    @property
    def gps_cov(self) -> np.ndarray:
        return np.diag([self.var_gps, self.var_gps])

    @property
    def initial_covariance(self) -> np.ndarray:
        return np.diag(np.asarray(self.initial_covariance_diag, dtype=float))


@dataclass(slots=True)
class DiffDriveSimulator:
    """Generate controls, measurements and ground truth for the calibration scenario."""

    world: object
    config: ScenarioConfig = field(default_factory=ScenarioConfig)
    seed: int | None = None

    system_model: DiffDriveSystemModel = field(init=False, repr=False)
    landmark_models: list = field(init=False, repr=False)
    gps_model: BundleMeasurementAdapter = field(init=False, repr=False)
    _rng: np.random.Generator = field(init=False, repr=False)
    _step_count: int = field(init=False, repr=False)
    _true_state: Bundle = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.system_model = DiffDriveSystemModel(
            Kinematics(*self.config.kinematics),
            covariance=self.config.control_cov,
        )
        self.landmark_models = self.world.measurement_models(self.config.landmark_cov)
        self.gps_model = BundleMeasurementAdapter(GPSMeasurementModel(covariance=self.config.gps_cov))
        self.reset()

    def reset(self, seed: int | None = None) -> None:
        """Reset ground truth, tick counter and random generator.

        Parameters
        ----------
        seed:
            If provided, use this seed. Otherwise the constructor seed is used.
        """
        seed_to_use = self.seed if seed is None else seed
        self._rng = np.random.default_rng(seed_to_use)
        self._step_count = 0
        self._true_state = self.initial_true_state()

    def initial_true_state(self) -> Bundle:
        return Bundle(SE2.identity(), Rn(self.config.initial_calibration))

    @property
    def true_state(self) -> Bundle:
        return self._true_state

    @property
    def time_s(self) -> float:
        return self._step_count * self.config.dt

    def sample_initial_state(self, rng: np.random.Generator | None = None) -> Bundle:
        """Draw a filter initial estimate from the initial covariance around the true start."""
        rng = self._rng if rng is None else rng
        std = np.sqrt(np.asarray(self.config.initial_covariance_diag, dtype=float))
        coeffs = self.initial_true_state().as_array() + std * rng.standard_normal(std.size)
        return Bundle(SE2(*coeffs[:3]), Rn(coeffs[3:]))

    def step(self) -> SimulationStep:
        """Advance the simulation by one control period.

        The ground truth moves first; measurements are taken at the new pose.
        """
        cfg = self.config
        time_s = self.time_s
        rates = np.asarray(cfg.wheel_rates, dtype=float)
        rate_noise = self._rng.normal(0.0, np.sqrt(cfg.var_wheel) / np.sqrt(cfg.dt), size=2)
        control_true = rates * cfg.dt
        control = (rates + rate_noise) * cfg.dt

        if cfg.calibration_change_s is not None and time_s > cfg.calibration_change_s:
            self._true_state = self._true_state.with_element(1, Rn(cfg.changed_calibration))
        self._true_state = self.system_model.predict_state(self._true_state, control_true)

        landmark_measurements: list[np.ndarray] = []
        if self._step_count % cfg.landmark_period_steps == 0:
            for model in self.landmark_models:
                noise = self._rng.normal(0.0, cfg.landmark_sigma, size=2)
                landmark_measurements.append(model.predict(self._true_state) + noise)

        gps = None
        if self._step_count % cfg.gps_period_steps == 0:
            gps = self.gps_model.predict(self._true_state) + self._rng.normal(0.0, np.sqrt(cfg.var_gps), size=2)

        self._step_count += 1
        return SimulationStep(
            time_s=time_s,
            true_state=self._true_state,
            control=control,
            control_true=control_true,
            landmark_measurements=landmark_measurements,
            gps=gps,
        )

    def run(self, N: int | None = None) -> list[SimulationStep]:
        """Run ``N`` steps (``config.steps`` by default) and collect them."""
        total_steps = self.config.steps if N is None else N
        return [self.step() for _ in range(total_steps)]
