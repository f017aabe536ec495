"""
Numerical integration with error control and event detection.

Implements explicit Runge-Kutta steppers (classic RK4 and the embedded
pairs Fehlberg 4(5), Cash-Karp 5(4) and Dormand-Prince 5(4)) with
automatic step size adjustment. Integration can stop on an event
condition, in which case the crossing is bracketed between two accepted
steps and refined with Brent's method.

Reference: Hairer, Norsett & Wanner, "Solving Ordinary Differential
           Equations I" (1993), Section II.4-II.5
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np
from scipy.optimize import brentq

from .dynamics import Dynamics, build_contexts, build_system_of_equations
from .errors import (
    IntegrationError, InvalidConfigurationError, UndefinedArgumentError, WrongOrderError,
)
from .events import EventCondition, RealCondition
from .state import State
from .time import Instant

logger = logging.getLogger(__name__)


class LogType(Enum):
    NO_LOG = 'no_log'
    LOG_CONSTANT = 'log_constant'
    LOG_ADAPTIVE = 'log_adaptive'


class StepperType(Enum):
    RUNGE_KUTTA_4 = 'runge_kutta_4'
    RUNGE_KUTTA_FEHLBERG_45 = 'runge_kutta_fehlberg_45'
    RUNGE_KUTTA_CASH_KARP_54 = 'runge_kutta_cash_karp_54'
    RUNGE_KUTTA_DOPRI5 = 'runge_kutta_dopri5'


@dataclass(frozen=True, eq=False)
class ButcherTableau:
    """Explicit Runge-Kutta coefficients; `error_weights` is None for fixed steppers."""
    nodes: np.ndarray
    A: np.ndarray
    weights: np.ndarray
    error_weights: Optional[np.ndarray] = None

    @property
    def is_adaptive(self) -> bool:
        return self.error_weights is not None


def _lower_triangular(rows: Sequence[Sequence[float]]) -> np.ndarray:
    size = len(rows) + 1
    A = np.zeros((size, size))
    for i, row in enumerate(rows, start=1):
        A[i, :len(row)] = row
    return A


_TABLEAUS = {
    StepperType.RUNGE_KUTTA_4: ButcherTableau(
        nodes=np.array([0, 1/2, 1/2, 1]),
        A=_lower_triangular([
            [1/2],
            [0, 1/2],
            [0, 0, 1],
        ]),
        weights=np.array([1/6, 1/3, 1/3, 1/6]),
    ),
    # Fehlberg (1969), NASA TR R-315
    StepperType.RUNGE_KUTTA_FEHLBERG_45: ButcherTableau(
        nodes=np.array([0, 1/4, 3/8, 12/13, 1, 1/2]),
        A=_lower_triangular([
            [1/4],
            [3/32, 9/32],
            [1932/2197, -7200/2197, 7296/2197],
            [439/216, -8, 3680/513, -845/4104],
            [-8/27, 2, -3544/2565, 1859/4104, -11/40],
        ]),
        weights=np.array([16/135, 0, 6656/12825, 28561/56430, -9/50, 2/55]),
        error_weights=np.array([25/216, 0, 1408/2565, 2197/4104, -1/5, 0]),
    ),
    # Cash & Karp (1990), ACM TOMS 16
    StepperType.RUNGE_KUTTA_CASH_KARP_54: ButcherTableau(
        nodes=np.array([0, 1/5, 3/10, 3/5, 1, 7/8]),
        A=_lower_triangular([
            [1/5],
            [3/40, 9/40],
            [3/10, -9/10, 6/5],
            [-11/54, 5/2, -70/27, 35/27],
            [1631/55296, 175/512, 575/13824, 44275/110592, 253/4096],
        ]),
        weights=np.array([37/378, 0, 250/621, 125/594, 0, 512/1771]),
        error_weights=np.array([2825/27648, 0, 18575/48384, 13525/55296, 277/14336, 1/4]),
    ),
    # Dormand & Prince (1980), J. Comp. Appl. Math. 6
    StepperType.RUNGE_KUTTA_DOPRI5: ButcherTableau(
        nodes=np.array([0, 1/5, 3/10, 4/5, 8/9, 1, 1]),
        A=_lower_triangular([
            [1/5],
            [3/40, 9/40],
            [44/45, -56/15, 32/9],
            [19372/6561, -25360/2187, 64448/6561, -212/729],
            [9017/3168, -355/33, 46732/5247, 49/176, -5103/18656],
            [35/384, 0, 500/1113, 125/192, -2187/6784, 11/84],
        ]),
        weights=np.array([35/384, 0, 500/1113, 125/192, -2187/6784, 11/84, 0]),
        error_weights=np.array([5179/57600, 0, 7571/16695, 393/640, -92097/339200, 187/2100, 1/40]),
    ),
}


@dataclass
class IntegrationResult:
    """Result of a conditional integration."""
    states: List[State]
    condition_is_satisfied: bool = False
    root_solver_has_converged: bool = False
    iteration_count: int = 0
    num_steps: int = 0
    num_rejections: int = 0

    @property
    def final_state(self) -> State:
        return self.states[-1]


@dataclass
class _StepStatistics:
    num_steps: int = 0
    num_rejections: int = 0


@dataclass(frozen=True)
class NumericalSolver:
    """
    Numerical solver configuration and integration entry points.

    The solver is a pure value: it keeps no state between calls, so one
    instance can be shared by any number of segments.

    Args:
        log_type: Which accepted steps are recorded (and logged at DEBUG)
        stepper_type: Runge-Kutta scheme
        time_step: Initial step (adaptive) or fixed step (RK4), seconds
        relative_tolerance: Relative error tolerance
        absolute_tolerance: Absolute error tolerance
        root_solver_tolerance: Event time tolerance (seconds)
        root_solver_max_iterations: Event refinement iteration cap
        safety_factor: Safety margin for step size adjustment
        max_step_increase: Maximum factor to increase step size
        min_step_decrease: Minimum factor to decrease step size
        min_time_step: Minimum allowable step after a rejection (seconds)
    """
    log_type: LogType = LogType.NO_LOG
    stepper_type: StepperType = StepperType.RUNGE_KUTTA_DOPRI5
    time_step: float = 5.0
    relative_tolerance: float = 1e-12
    absolute_tolerance: float = 1e-12
    root_solver_tolerance: float = 1e-7
    root_solver_max_iterations: int = 100
    safety_factor: float = 0.9
    max_step_increase: float = 2.0
    min_step_decrease: float = 0.2
    min_time_step: float = 1e-10

    @classmethod
    def default(cls) -> 'NumericalSolver':
        return cls()

    @classmethod
    def default_conditional(cls) -> 'NumericalSolver':
        """Alias of `default()`; the default profile already detects events."""
        return cls.default()

    @classmethod
    def undefined(cls) -> 'NumericalSolver':
        return cls(
            log_type=None,
            stepper_type=None,
            time_step=math.nan,
            relative_tolerance=math.nan,
            absolute_tolerance=math.nan,
        )

    @property
    def is_adaptive(self) -> bool:
        if self.stepper_type not in _TABLEAUS:
            return False
        return _TABLEAUS[self.stepper_type].is_adaptive

    def is_defined(self) -> bool:
        if self.log_type is None or self.stepper_type is None:
            return False
        return not any(
            math.isnan(value) for value in
            (self.time_step, self.relative_tolerance, self.absolute_tolerance,
             self.root_solver_tolerance)
        )

    def validate(self):
        """Raise InvalidConfigurationError if the configuration cannot be used."""
        if not self.is_defined():
            raise InvalidConfigurationError("Numerical solver is undefined")

        if not isinstance(self.log_type, LogType):
            raise InvalidConfigurationError(f"Unknown log type: {self.log_type}")
        if not isinstance(self.stepper_type, StepperType):
            raise InvalidConfigurationError(f"Unknown stepper type: {self.stepper_type}")

        for name in ('time_step', 'relative_tolerance', 'absolute_tolerance',
                     'root_solver_tolerance', 'min_time_step'):
            value = getattr(self, name)
            if not math.isfinite(value) or value <= 0.0:
                raise InvalidConfigurationError(f"{name} must be positive and finite, got {value}")

        if not 0.0 < self.safety_factor <= 1.0:
            raise InvalidConfigurationError(f"safety_factor must be in (0, 1], got {self.safety_factor}")
        if self.max_step_increase < 1.0:
            raise InvalidConfigurationError(
                f"max_step_increase must be >= 1, got {self.max_step_increase}"
            )
        if not 0.0 < self.min_step_decrease <= 1.0:
            raise InvalidConfigurationError(
                f"min_step_decrease must be in (0, 1], got {self.min_step_decrease}"
            )
        if int(self.root_solver_max_iterations) < 1:
            raise InvalidConfigurationError(
                f"root_solver_max_iterations must be >= 1, got {self.root_solver_max_iterations}"
            )

    def integrate_time(self, state: State, instant: Instant,
                       dynamics: Sequence[Dynamics]) -> State:
        """
        Propagate a state to an instant.

        Args:
            state: Initial state
            instant: Final instant (before or after the initial one)
            dynamics: Dynamics acting on the state

        Returns:
            State at `instant`
        """
        return self.integrate_times(state, [instant], dynamics)[0]

    def integrate_times(self, state: State, instants: Sequence[Instant],
                        dynamics: Sequence[Dynamics]) -> List[State]:
        """
        Propagate a state through monotonic instants.

        Steps are shortened to land exactly on every requested instant.

        Returns:
            One state per instant, in order
        """
        self.validate()

        if len(instants) == 0:
            return []

        offsets = [instant - state.instant for instant in instants]
        direction = 1.0 if offsets[-1] >= 0.0 else -1.0

        if any(direction * (later - earlier) < 0.0 for earlier, later in zip(offsets, offsets[1:])) \
                or direction * offsets[0] < 0.0:
            raise WrongOrderError("Instants must be monotonic and on one side of the initial state")

        system = build_system_of_equations(
            build_contexts(dynamics, state.broker), state.instant, state.frame
        )

        states = []
        index = 0

        while index < len(offsets) and offsets[index] == 0.0:
            states.append(State(instants[index], state.coordinates, state.frame, state.broker))
            index += 1

        if index == len(offsets):
            return states

        statistics = _StepStatistics()

        for t, y, _ in self._march(system, 0.0, state.coordinates, offsets[-1],
                                   stops=offsets[index:], statistics=statistics):
            while index < len(offsets) and t == offsets[index]:
                states.append(State(instants[index], y, state.frame, state.broker))
                index += 1

        logger.debug(
            f"Integration complete: {statistics.num_steps} steps, "
            f"{statistics.num_rejections} rejections"
        )

        return states

    def integrate_time_to_condition(self, state: State, instant: Instant,
                                    dynamics: Sequence[Dynamics],
                                    event_condition: EventCondition) -> IntegrationResult:
        """
        Propagate a state until a condition is satisfied or an instant is reached.

        Args:
            state: Initial state
            instant: Instant bounding the propagation
            dynamics: Dynamics acting on the state
            event_condition: Condition with resolved targets

        Returns:
            IntegrationResult; the last state is the event state when
            `condition_is_satisfied` is True
        """
        self.validate()

        if event_condition is None:
            raise UndefinedArgumentError("Event condition is undefined")

        if event_condition.is_satisfied(state, state):
            return IntegrationResult(
                states=[state], condition_is_satisfied=True, root_solver_has_converged=True
            )

        duration = instant - state.instant

        if duration == 0.0:
            return IntegrationResult(states=[state])

        frame, broker = state.frame, state.broker
        system = build_system_of_equations(build_contexts(dynamics, broker), state.instant, frame)

        statistics = _StepStatistics()
        result = IntegrationResult(states=[state])
        previous, previous_t = state, 0.0

        for t, y, on_grid in self._march(system, 0.0, state.coordinates, duration,
                                         on_grid=self.log_type is LogType.LOG_CONSTANT,
                                         statistics=statistics):
            current_instant = instant if t == duration else state.instant + t
            current = State(current_instant, y, frame, broker)

            if event_condition.is_satisfied(current, previous):
                event_state, converged, iterations = self._refine(
                    system, event_condition, previous, previous_t, current, t, state.instant
                )
                result.states.append(event_state)
                result.condition_is_satisfied = True
                result.root_solver_has_converged = converged
                result.iteration_count = iterations

                if not converged:
                    logger.warning(
                        f"Root solver did not converge for {event_condition.name} "
                        f"after {iterations} iterations"
                    )
                break

            if self.log_type is not LogType.LOG_CONSTANT or on_grid or t == duration:
                result.states.append(current)

            if self.log_type is not LogType.NO_LOG:
                logger.debug(f"t={t:.6f} s, step {statistics.num_steps}")

            previous, previous_t = current, t

        result.num_steps = statistics.num_steps
        result.num_rejections = statistics.num_rejections

        logger.debug(
            f"Integration complete: {statistics.num_steps} steps, "
            f"{statistics.num_rejections} rejections, "
            f"condition satisfied={result.condition_is_satisfied}"
        )

        return result

    def _march(self, system: Callable, t0: float, y0: np.ndarray, t_end: float,
               stops: Sequence[float] = (), on_grid: bool = False,
               statistics: Optional[_StepStatistics] = None) -> Iterator[Tuple[float, np.ndarray, bool]]:
        """
        Yield (t, y, on_grid) after every accepted step from t0 to t_end.

        Steps are clipped to land exactly on `stops`, on t_end and, when
        `on_grid` is set, on multiples of `time_step` from t0.
        """
        tableau = _TABLEAUS[self.stepper_type]
        direction = 1.0 if t_end >= t0 else -1.0

        targets = [s for s in stops if direction * (s - t0) > 0.0 and direction * (t_end - s) > 0.0]
        targets.append(t_end)

        t = t0
        y = np.array(y0, dtype=float)
        dt = self.time_step
        index = 0
        grid_index = 1

        while direction * (t_end - t) > 0.0:
            target = targets[index]
            grid_point = t0 + direction * grid_index * self.time_step
            if on_grid and direction * (target - grid_point) > 0.0:
                target = grid_point

            remaining = abs(target - t)
            h = min(dt, remaining)
            landed = h >= remaining

            y_new, error_ratio = self._step(system, t, y, direction * h, tableau)

            if error_ratio > 1.0:
                if statistics is not None:
                    statistics.num_rejections += 1
                dt = self._adjust_timestep(h, error_ratio)

                if dt < self.min_time_step:
                    raise IntegrationError(
                        f"Timestep too small ({dt:.2e} s) at t={t:.2f}. "
                        f"Integration likely unstable. Try relaxing tolerances."
                    )
                continue

            t_new = target if landed else t + direction * h
            if t_new == t:
                raise IntegrationError(f"Timestep {h:.2e} s below time resolution at t={t:.2f}")

            if tableau.is_adaptive:
                proposed = self._adjust_timestep(h, error_ratio)
                dt = max(dt, proposed) if landed else proposed

            t, y = t_new, y_new
            if statistics is not None:
                statistics.num_steps += 1

            is_grid = on_grid and t == grid_point
            if is_grid:
                grid_index += 1
            while index < len(targets) - 1 and direction * (targets[index] - t) <= 0.0:
                index += 1

            yield t, y, is_grid

    def _step(self, system: Callable, t: float, y: np.ndarray, dt: float,
              tableau: ButcherTableau) -> Tuple[np.ndarray, float]:
        """
        Single Runge-Kutta step.

        Returns:
            (y_new, error_ratio); error_ratio is 0 for fixed steppers
        """
        k = np.zeros((tableau.nodes.size, y.size))

        for i in range(tableau.nodes.size):
            y_stage = y + dt * (tableau.A[i, :i] @ k[:i])
            k[i] = system(t + tableau.nodes[i] * dt, y_stage)

        y_high = y + dt * (tableau.weights @ k)

        if not tableau.is_adaptive:
            return y_high, 0.0

        y_low = y + dt * (tableau.error_weights @ k)

        error = np.abs(y_high - y_low)
        tolerance = self.absolute_tolerance + self.relative_tolerance * np.abs(y_high)

        return y_high, float(np.max(error / tolerance))

    def _adjust_timestep(self, dt: float, error_ratio: float) -> float:
        """Adjust timestep magnitude based on the error estimate."""
        if error_ratio == 0:
            factor = self.max_step_increase
        else:
            factor = self.safety_factor * (1.0 / error_ratio) ** 0.2

        factor = np.clip(factor, self.min_step_decrease, self.max_step_increase)

        return float(dt * factor)

    def _advance(self, system: Callable, t0: float, y0: np.ndarray, t1: float) -> np.ndarray:
        y = np.array(y0, dtype=float)
        for _, y, _ in self._march(system, t0, y0, t1):
            pass
        return y

    def _refine(self, system: Callable, condition: EventCondition,
                left_state: State, left_t: float, right_state: State, right_t: float,
                reference_instant: Instant) -> Tuple[State, bool, int]:
        """
        Locate the event inside an accepted step.

        Returns:
            (event_state, converged, iteration_count)
        """
        cache = {left_t: left_state, right_t: right_state}

        def state_at(t: float) -> State:
            if t not in cache:
                y = self._advance(system, left_t, left_state.coordinates, t)
                cache[t] = State(reference_instant + t, y, left_state.frame, left_state.broker)
            return cache[t]

        if isinstance(condition, RealCondition):
            right_error = condition.compute_error(right_state)

            if right_error == 0.0:
                return right_state, True, 0

            left_error = condition.compute_error(left_state)

            if left_error * right_error <= 0.0:
                root, info = brentq(
                    lambda t: condition.compute_error(state_at(t)),
                    min(left_t, right_t), max(left_t, right_t),
                    xtol=self.root_solver_tolerance,
                    maxiter=int(self.root_solver_max_iterations),
                    full_output=True,
                    disp=False,
                )
                event = self._satisfied_side(condition, state_at, root, left_state, left_t, right_t)
                return (event if event is not None else right_state), info.converged, info.iterations

        return self._bisect(condition, state_at, left_state, left_t, right_t)

    def _satisfied_side(self, condition: EventCondition, state_at: Callable, root: float,
                        left_state: State, left_t: float, right_t: float) -> Optional[State]:
        """First state at or just past `root` that satisfies the condition."""
        direction = 1.0 if right_t > left_t else -1.0

        candidates = [root]
        delta = max(4.0 * float(np.spacing(abs(root))), 1e-12)
        while delta < self.root_solver_tolerance:
            candidates.append(root + direction * delta)
            delta *= 10.0
        candidates.append(root + direction * self.root_solver_tolerance)

        for t in candidates:
            if direction * (t - left_t) <= 0.0 or direction * (right_t - t) <= 0.0:
                continue
            candidate = state_at(t)
            if condition.is_satisfied(candidate, left_state):
                return candidate

        return None

    def _bisect(self, condition: EventCondition, state_at: Callable, left_state: State,
                left_t: float, right_t: float) -> Tuple[State, bool, int]:
        """Bisection on the predicate; the right end always satisfies it."""
        a, b = left_t, right_t
        iterations = 0

        while abs(b - a) > self.root_solver_tolerance and iterations < self.root_solver_max_iterations:
            middle = 0.5 * (a + b)
            if middle == a or middle == b:
                break
            if condition.is_satisfied(state_at(middle), left_state):
                b = middle
            else:
                a = middle
            iterations += 1

        return state_at(b), abs(b - a) <= self.root_solver_tolerance, iterations
