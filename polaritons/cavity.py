"""
Cavity: the coupled polariton-phonon-reservoir system.

The Cavity owns the entity arenas and a flat real state vector of
dimension N = 2·#polaritons + 2·#phonons + #reservoirs laid out as

    [Re a_0, Im a_0, ..., x_0, v_0, ..., n_0, ...]

polaritons in creation order, then phonons in creation order, then the
reservoirs of those polaritons that own one, in polariton order.
"""

import numpy as np
from typing import Optional, Sequence, Tuple

from .errors import ConfigurationError, EntityIndexError
from .integrators import DormandPrinceStepper, RK4Stepper
from .modes import PhononMode, PolaritonMode, Reservoir


class Cavity:
    """
    Network of polaritons coupled through phonons, with optional reservoirs.

    The Cavity is the vector field of the ODE system (it is callable as
    f(x, t)) and drives two steppers over it: a fixed-step RK4 and an
    error-controlled Dormand-Prince 5(4).

    Attributes:
        polaritons: Polariton arena (creation order)
        phonons: Phonon arena (creation order)
        dimension: Length of the state vector
        fixed_stepper: RK4 stepper used by do_step()
        adaptive_stepper: Error-controlled stepper used by adaptive_step()
    """

    def __init__(
        self,
        polaritons: Sequence[PolaritonMode],
        phonons: Sequence[PhononMode],
        t0: float = 0.0,
        time_step: float = 1e-3,
        abs_tol: float = 1e-6,
        rel_tol: float = 1e-6
    ):
        """
        Build the system and pack the initial state.

        Args:
            polaritons: Fully wired polariton modes
            phonons: Fully wired phonon modes
            t0: Initial time
            time_step: Initial step size remembered by the steppers
            abs_tol: Absolute tolerance of the adaptive stepper
            rel_tol: Relative tolerance of the adaptive stepper

        Raises:
            ConfigurationError: if any link or pairing is malformed, or
                time_step is not positive
        """
        self.polaritons = list(polaritons)
        self.phonons = list(phonons)

        for i, p in enumerate(self.polaritons):
            p.check(len(self.polaritons), len(self.phonons), label=f"Polariton {i}")
        for i, ph in enumerate(self.phonons):
            ph.check(len(self.polaritons), label=f"Phonon {i}")

        self._reservoir_owners = self._find_reservoir_owners()
        self._reservoirs = [self.polaritons[i].reservoir for i in self._reservoir_owners]
        self._phonon_offset = 2 * len(self.polaritons)
        self._reservoir_offset = self._phonon_offset + 2 * len(self.phonons)
        self.dimension = self._reservoir_offset + len(self._reservoirs)

        self.fixed_stepper = RK4Stepper()
        self.adaptive_stepper = DormandPrinceStepper(abs_tol, rel_tol)

        self._state = np.zeros(self.dimension)
        self._time = float(t0)
        self.set_time_step(time_step)
        self.pack()

    def __repr__(self) -> str:
        return (f"Cavity(polaritons={self.n_polaritons}, phonons={self.n_phonons}, "
                f"reservoirs={self.n_reservoirs}, dimension={self.dimension}, t={self._time})")

    def _find_reservoir_owners(self) -> Tuple[int, ...]:
        return tuple(i for i, p in enumerate(self.polaritons) if p.reservoir is not None)

    @property
    def n_polaritons(self) -> int:
        return len(self.polaritons)

    @property
    def n_phonons(self) -> int:
        return len(self.phonons)

    @property
    def n_reservoirs(self) -> int:
        return len(self._reservoirs)

    @property
    def reservoir_owners(self) -> Tuple[int, ...]:
        """Polariton indices that own a reservoir, in state-vector order."""
        return self._reservoir_owners

    @property
    def reservoirs(self) -> Tuple[Reservoir, ...]:
        return tuple(self._reservoirs)

    # === State layout ===

    def pack(self):
        """
        Copy entity fields into the state vector.

        Call after modifying entities out of band (initial conditions,
        perturbations).

        Raises:
            ConfigurationError: if reservoirs were attached or detached
                after construction
        """
        owners = self._find_reservoir_owners()
        current = [self.polaritons[i].reservoir for i in owners]
        if owners != self._reservoir_owners or any(
                a is not b for a, b in zip(current, self._reservoirs)):
            raise ConfigurationError(
                f"Reservoir layout changed after construction: owners {owners}, "
                f"expected {self._reservoir_owners}; rebuild the Cavity")

        x = self._state
        for i, p in enumerate(self.polaritons):
            x[2 * i] = p.value.real
            x[2 * i + 1] = p.value.imag

        base = self._phonon_offset
        for j, ph in enumerate(self.phonons):
            x[base + 2 * j] = ph.position
            x[base + 2 * j + 1] = ph.velocity

        base = self._reservoir_offset
        for k, r in enumerate(self._reservoirs):
            x[base + k] = r.value

    def unpack(self, x: np.ndarray):
        """Copy a state vector into the entity fields (inverse of pack)."""
        for i, p in enumerate(self.polaritons):
            p.value = complex(x[2 * i], x[2 * i + 1])

        base = self._phonon_offset
        for j, ph in enumerate(self.phonons):
            ph.position = float(x[base + 2 * j])
            ph.velocity = float(x[base + 2 * j + 1])

        base = self._reservoir_offset
        for k, r in enumerate(self._reservoirs):
            r.value = float(x[base + k])

    # === Vector field ===

    def evaluate(self, x: np.ndarray, t: float) -> np.ndarray:
        """
        Time derivative of the state vector.

        Unpacks x into the entities, then collects each entity's
        derivative at the same offsets pack() uses. The only side effect
        is on entity fields, which the next unpack overwrites.

        Args:
            x: State vector of length dimension
            t: Time

        Returns:
            New array dx/dt
        """
        if len(x) != self.dimension:
            raise ValueError(f"State has length {len(x)}, expected {self.dimension}")
        self.unpack(x)
        dxdt = np.empty(self.dimension)

        for i, p in enumerate(self.polaritons):
            d = p.derivative(t, self.polaritons, self.phonons)
            dxdt[2 * i] = d.real
            dxdt[2 * i + 1] = d.imag

        base = self._phonon_offset
        for j, ph in enumerate(self.phonons):
            dxdt[base + 2 * j] = ph.velocity
            dxdt[base + 2 * j + 1] = ph.second_derivative(t, self.polaritons)

        base = self._reservoir_offset
        for k, (owner, r) in enumerate(zip(self._reservoir_owners, self._reservoirs)):
            a = self.polaritons[owner].value
            dxdt[base + k] = r.derivative(a.real ** 2 + a.imag ** 2)

        return dxdt

    def __call__(self, x: np.ndarray, t: float) -> np.ndarray:
        return self.evaluate(x, t)

    # === Stepping ===

    def _advance(self, stepper, dt: float):
        x, t, dt_next = stepper.step(self.evaluate, self._state, self._time, dt)
        self._state[:] = x
        self._time = t
        self._time_step = dt_next
        self.unpack(self._state)

    def do_step(self, dt: float):
        """Advance by exactly dt with RK4."""
        if dt <= 0:
            raise ValueError(f"time step must be positive, got {dt}")
        self._advance(self.fixed_stepper, dt)

    def adaptive_step(self):
        """
        Advance by one accepted error-controlled step.

        Starts from the remembered step size and remembers the suggested
        size for the next call.

        Raises:
            IntegrationError: if no acceptable step is found
        """
        self._advance(self.adaptive_stepper, self._time_step)

    def run(self, n_steps: int, adaptive: bool = True, dt: Optional[float] = None):
        """
        Perform n_steps units of work.

        Args:
            n_steps: Number of steps
            adaptive: Use the error-controlled stepper
            dt: Fixed step size (defaults to the remembered step size)
        """
        if n_steps < 0:
            raise ValueError(f"n_steps must be >= 0, got {n_steps}")
        if adaptive:
            for _ in range(n_steps):
                self.adaptive_step()
        else:
            dt = self._time_step if dt is None else dt
            for _ in range(n_steps):
                self.do_step(dt)

    # === Sampling ===

    def get_state(self) -> np.ndarray:
        """Read-only view of the state vector."""
        view = self._state.view()
        view.flags.writeable = False
        return view

    def get_time(self) -> float:
        return self._time

    def get_time_step(self) -> float:
        """Step size the next adaptive step will try (or the last fixed dt)."""
        return self._time_step

    def set_time_step(self, dt: float):
        if dt <= 0:
            raise ConfigurationError(f"time step must be positive, got {dt}")
        self._time_step = dt

    def get_polariton(self, index: int) -> PolaritonMode:
        if not 0 <= index < len(self.polaritons):
            raise EntityIndexError(
                f"Polariton index {index} out of bounds ({len(self.polaritons)} polaritons)")
        return self.polaritons[index]

    def get_phonon(self, index: int) -> PhononMode:
        if not 0 <= index < len(self.phonons):
            raise EntityIndexError(
                f"Phonon index {index} out of bounds ({len(self.phonons)} phonons)")
        return self.phonons[index]

    # === Observables ===

    def amplitudes(self) -> np.ndarray:
        """Complex polariton amplitudes, shape (n_polaritons,)."""
        x = self._state[:self._phonon_offset]
        return x[0::2] + 1j * x[1::2]

    def intensities(self) -> np.ndarray:
        """|a|² per polariton."""
        return np.abs(self.amplitudes()) ** 2

    def total_intensity(self) -> float:
        return float(np.sum(self.intensities()))

    def phonon_positions(self) -> np.ndarray:
        return self._state[self._phonon_offset:self._reservoir_offset:2].copy()

    def phonon_velocities(self) -> np.ndarray:
        return self._state[self._phonon_offset + 1:self._reservoir_offset:2].copy()

    def reservoir_values(self) -> np.ndarray:
        return self._state[self._reservoir_offset:].copy()


def randomize_state(
    cavity: Cavity,
    rng: np.random.Generator,
    polariton_amplitude: float = 0.0,
    phonon_amplitude: float = 0.0,
    reservoir_amplitude: float = 0.0
):
    """
    Randomize initial conditions in place and repack.

    Polariton real/imaginary parts and phonon position/velocity are drawn
    from uniform(-A, A); reservoirs get uniform(0, A) added and are kept
    non-negative. A zero amplitude leaves that entity kind untouched.

    Args:
        cavity: System to modify
        rng: Random generator (explicit, for reproducibility)
        polariton_amplitude: Half-width for polariton amplitudes
        phonon_amplitude: Half-width for phonon position and velocity
        reservoir_amplitude: Width of the reservoir increment
    """
    if polariton_amplitude > 0:
        for p in cavity.polaritons:
            re, im = rng.uniform(-polariton_amplitude, polariton_amplitude, size=2)
            p.value = complex(re, im)

    if phonon_amplitude > 0:
        for ph in cavity.phonons:
            ph.position, ph.velocity = rng.uniform(-phonon_amplitude, phonon_amplitude, size=2)

    if reservoir_amplitude > 0:
        for r in cavity.reservoirs:
            r.value = max(0.0, r.value + rng.uniform(0.0, reservoir_amplitude))

    cavity.pack()
