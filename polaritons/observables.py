"""
Stationary observables.

After the transient has died out, the state is sampled once per step and
the samples are averaged: polariton intensities |a|², phonon x², and
reservoir populations.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Optional

from .cavity import Cavity


@dataclass
class StationaryAverages:
    """
    Sample means over a stationary run.

    Attributes:
        intensities: <|a_i|²> per polariton
        phonon_position_sq: <x_j²> per phonon
        reservoirs: <n_k> per reservoir (state-vector order)
        n_samples: Number of samples averaged
        t_start: Time of the first sample
        t_end: Time after the last step
    """
    intensities: np.ndarray = field(default_factory=lambda: np.zeros(0))
    phonon_position_sq: np.ndarray = field(default_factory=lambda: np.zeros(0))
    reservoirs: np.ndarray = field(default_factory=lambda: np.zeros(0))
    n_samples: int = 0
    t_start: float = 0.0
    t_end: float = 0.0

    def as_array(self) -> np.ndarray:
        """Observables flattened in output order."""
        return np.concatenate([self.intensities, self.phonon_position_sq, self.reservoirs])


def time_average(
    cavity: Cavity,
    n_steps: int,
    adaptive: bool = True,
    dt: Optional[float] = None
) -> StationaryAverages:
    """
    Sample, then step, n_steps times and average the samples.

    With the adaptive stepper the samples are unevenly spaced in time; the
    arithmetic mean is still used.

    Args:
        cavity: System, assumed past its transient
        n_steps: Number of samples (and steps)
        adaptive: Use the error-controlled stepper
        dt: Fixed step size when adaptive is False

    Returns:
        StationaryAverages
    """
    if n_steps <= 0:
        raise ValueError(f"n_steps must be positive, got {n_steps}")
    if not adaptive:
        dt = cavity.get_time_step() if dt is None else dt

    intensities = np.zeros(cavity.n_polaritons)
    position_sq = np.zeros(cavity.n_phonons)
    reservoirs = np.zeros(cavity.n_reservoirs)
    t_start = cavity.get_time()

    for _ in range(n_steps):
        intensities += cavity.intensities()
        position_sq += cavity.phonon_positions() ** 2
        reservoirs += cavity.reservoir_values()
        if adaptive:
            cavity.adaptive_step()
        else:
            cavity.do_step(dt)

    return StationaryAverages(
        intensities=intensities / n_steps,
        phonon_position_sq=position_sq / n_steps,
        reservoirs=reservoirs / n_steps,
        n_samples=n_steps,
        t_start=t_start,
        t_end=cavity.get_time(),
    )
