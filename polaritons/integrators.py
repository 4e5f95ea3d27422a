"""
Time steppers for the cavity vector field.

Both steppers expose the same unit of work:

    step(f, x, t, dt) -> (x_next, t_next, dt_next)

where f(x, t) -> dx/dt. The fixed-step RK4 always advances by exactly dt.
The Dormand-Prince 5(4) stepper retries with a smaller step until the local
error is within tolerance and returns the step size to use next, so that
repeated calls self-tune.
"""

import numpy as np
from typing import Callable, Tuple

from .errors import IntegrationError

# Vector field: (x, t) -> dx/dt
RHS = Callable[[np.ndarray, float], np.ndarray]


# Dormand-Prince 5(4) tableau
_C = np.array([0.0, 1/5, 3/10, 4/5, 8/9, 1.0, 1.0])
_A = [
    [],
    [1/5],
    [3/40, 9/40],
    [44/45, -56/15, 32/9],
    [19372/6561, -25360/2187, 64448/6561, -212/729],
    [9017/3168, -355/33, 46732/5247, 49/176, -5103/18656],
    [35/384, 0.0, 500/1113, 125/192, -2187/6784, 11/84],
]
_B = np.array([35/384, 0.0, 500/1113, 125/192, -2187/6784, 11/84, 0.0])
# Difference between 5th and embedded 4th order weights
_E = np.array([71/57600, 0.0, -71/16695, 71/1920, -17253/339200, 22/525, -1/40])


def rk4_step(f: RHS, x: np.ndarray, t: float, dt: float) -> np.ndarray:
    """Classical Runge-Kutta 4 step."""
    k1 = f(x, t)
    k2 = f(x + 0.5 * dt * k1, t + 0.5 * dt)
    k3 = f(x + 0.5 * dt * k2, t + 0.5 * dt)
    k4 = f(x + dt * k3, t + dt)
    return x + (dt / 6.0) * (k1 + 2 * k2 + 2 * k3 + k4)


def dopri5_step(f: RHS, x: np.ndarray, t: float, dt: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    One Dormand-Prince 5(4) step.

    Returns:
        Tuple of (x_next, error_estimate, dxdt at the start of the step)
    """
    k = np.empty((7, x.size))
    k[0] = f(x, t)
    for i in range(1, 7):
        k[i] = f(x + dt * np.dot(_A[i], k[:i]), t + _C[i] * dt)

    x_next = x + dt * np.dot(_B, k)
    error = dt * np.dot(_E, k)
    return x_next, error, k[0]


class RK4Stepper:
    """Fixed-step Runge-Kutta 4. Never rejects a step."""

    def __init__(self):
        self.n_accepted = 0
        self.n_rejected = 0

    def step(self, f: RHS, x: np.ndarray, t: float, dt: float) -> Tuple[np.ndarray, float, float]:
        self.n_accepted += 1
        return rk4_step(f, x, t, dt), t + dt, dt


class DormandPrinceStepper:
    """
    Error-controlled Dormand-Prince 5(4) stepper.

    The local error of component i is measured relative to

        abs_tol + rel_tol * (|x_i| + dt * |dxdt_i|)

    and the max-norm over components must not exceed 1. A rejected step
    shrinks dt by at most a factor of 5 and is retried; an accepted step
    with a comfortably small error grows dt for the next call.

    Attributes:
        abs_tol: Absolute error tolerance
        rel_tol: Relative error tolerance
        max_rejections: Consecutive rejections allowed before giving up
        min_time_step: Smallest step size considered meaningful
        n_accepted: Number of accepted steps so far
        n_rejected: Number of rejected trial steps so far
    """

    order = 5
    error_order = 4

    def __init__(
        self,
        abs_tol: float = 1e-6,
        rel_tol: float = 1e-6,
        max_rejections: int = 500,
        min_time_step: float = 1e-14
    ):
        if abs_tol < 0 or rel_tol < 0 or abs_tol + rel_tol == 0:
            raise ValueError(f"Invalid tolerances abs_tol={abs_tol}, rel_tol={rel_tol}")
        self.abs_tol = abs_tol
        self.rel_tol = rel_tol
        self.max_rejections = max_rejections
        self.min_time_step = min_time_step
        self.n_accepted = 0
        self.n_rejected = 0

    def error_norm(self, x: np.ndarray, dxdt: np.ndarray, error: np.ndarray, dt: float) -> float:
        """Max-norm of the error scaled by the per-component tolerance."""
        scale = self.abs_tol + self.rel_tol * (np.abs(x) + abs(dt) * np.abs(dxdt))
        err = float(np.max(np.abs(error) / scale)) if error.size else 0.0
        return err if np.isfinite(err) else np.inf

    def try_step(self, f: RHS, x: np.ndarray, t: float, dt: float) -> Tuple[bool, np.ndarray, float, float]:
        """
        Attempt a single step of size dt.

        Returns:
            (accepted, x_next, t_next, dt_next). On rejection x and t are
            returned unchanged and dt_next is the reduced step to retry with.
        """
        x_next, error, dxdt = dopri5_step(f, x, t, dt)
        err = self.error_norm(x, dxdt, error, dt)

        if err > 1.0:
            factor = 0.9 * err ** (-1.0 / (self.error_order - 1)) if np.isfinite(err) else 0.0
            self.n_rejected += 1
            return False, x, t, dt * max(factor, 0.2)

        dt_next = dt
        if err < 0.5:
            err = max(5.0 ** (-self.order), err)
            dt_next = dt * 0.9 * err ** (-1.0 / self.order)
        self.n_accepted += 1
        return True, x_next, t + dt, dt_next

    def step(self, f: RHS, x: np.ndarray, t: float, dt: float) -> Tuple[np.ndarray, float, float]:
        """
        Advance by one accepted step, retrying rejected attempts.

        Raises:
            IntegrationError: if no acceptable step is found
        """
        for _ in range(self.max_rejections + 1):
            if abs(dt) < self.min_time_step:
                raise IntegrationError(
                    f"Step size underflow at t={t}: dt={dt} below {self.min_time_step}")
            accepted, x_next, t_next, dt = self.try_step(f, x, t, dt)
            if accepted:
                return x_next, t_next, dt
        raise IntegrationError(
            f"No acceptable step found at t={t} after {self.max_rejections} rejections")
