"""
Cavity entities: polariton modes, phonon modes and reservoirs.

Entities are passive holders of physical state. They never reference
each other directly; links carry integer indices into the polariton and
phonon arenas owned by the Cavity, and the derivative methods receive
those arenas explicitly.

Equations (t is global time):

    polariton:  ȧ = -i [ a(-iγ + U|a|² + iξ n) + F e^{iδ_F t}
                         + Σ_links (J + g x_m) e^{±i(Ω_m + δ)t} a_neighbor ]
    phonon:     ẍ = -Ω² x - Γ ẋ - 2ΩΓ Re[ Σ_pairs G a_0 a_1* e^{-i(Ω + δ)t} ]
    reservoir:  ṅ = τ (P - n (1 + α² |a|²))
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, List

from .errors import ConfigurationError, EntityIndexError


@dataclass
class Coupling:
    """
    Directed link from a polariton to a neighbouring polariton.

    The hopping is mediated by a phonon mode and rotates at the phonon
    frequency plus detuning (rotating-frame cancellation of the fast
    mechanical oscillation).

    Attributes:
        neighbor: Index of the neighbouring polariton
        phonon: Index of the mediating phonon mode
        J: Constant hopping amplitude
        g: Optomechanical coupling (multiplies phonon position)
        delta: Detuning from the mechanical resonance
        above: Phase sign; True rotates with +1, False with -1
    """
    neighbor: int
    phonon: int
    J: complex = 0.0
    g: complex = 1.0
    delta: float = 0.0
    above: bool = True

    @property
    def sign(self) -> float:
        return 1.0 if self.above else -1.0


@dataclass
class Pairing:
    """
    Back-action source of a phonon: the beat note of two polaritons.

    Attributes:
        sites: Indices of the two polaritons (a_0 a_1*)
        delta: Detuning from the mechanical resonance
        coupling: Back-action strength
    """
    sites: Tuple[int, int]
    delta: float = 0.0
    coupling: float = 1.0


@dataclass
class Reservoir:
    """
    Non-resonant pump reservoir feeding a single polariton.

    Relaxes with rate tau toward power / (1 + alpha² |a|²).

    Attributes:
        coupling: Gain coupling ξ into the owning polariton
        tau: Relaxation rate
        power: Pump power P
        alpha: Saturation parameter
        value: Reservoir population n
    """
    coupling: float = 1.0
    tau: float = 1.0
    power: float = 0.0
    alpha: float = 1.0
    value: float = 0.0

    def set_power(self, power: float):
        self.power = power

    def derivative(self, intensity: float) -> float:
        """
        Time derivative of the population.

        Args:
            intensity: |a|² of the owning polariton
        """
        return self.tau * (self.power - self.value * (1.0 + self.alpha ** 2 * intensity))


class PolaritonMode:
    """
    Driven-dissipative complex amplitude with Kerr nonlinearity.

    Attributes:
        gamma: Dissipation rate
        U: Self-interaction (Kerr) coefficient
        value: Complex amplitude
        couplings: Outgoing links to neighbouring polaritons
        drive_amplitude: Resonant drive F
        drive_detuning: Resonant drive detuning δ_F
        reservoir: Owned pump reservoir, if any
    """

    def __init__(self, gamma: float = 1.0, U: float = 0.0, value: complex = 0.0):
        self.gamma = gamma
        self.U = U
        self.value = complex(value)
        self.couplings: List[Coupling] = []
        self.drive_amplitude = 0j
        self.drive_detuning = 0.0
        self.reservoir: Optional[Reservoir] = None

    def __repr__(self) -> str:
        return (f"PolaritonMode(gamma={self.gamma}, U={self.U}, value={self.value}, "
                f"links={len(self.couplings)}, reservoir={self.reservoir is not None})")

    def connect(
        self,
        neighbor: int,
        phonon: int,
        J: complex = 0.0,
        g: complex = 1.0,
        delta: float = 0.0,
        above: bool = True
    ) -> Coupling:
        """
        Add a directed link to another polariton through a phonon.

        Args:
            neighbor: Polariton index of the neighbour
            phonon: Phonon index mediating the link
            J: Constant hopping
            g: Phonon-position coupling
            delta: Detuning added to the phonon frequency
            above: Sign of the rotating phase

        Returns:
            The created Coupling record
        """
        link = Coupling(neighbor, phonon, J, g, delta, above)
        self.couplings.append(link)
        return link

    def set_driving(self, amplitude: complex, detuning: float = 0.0):
        """Set the coherent (resonant) drive F e^{iδt}."""
        self.drive_amplitude = complex(amplitude)
        self.drive_detuning = detuning

    def add_reservoir(
        self,
        coupling: float = 1.0,
        tau: float = 1.0,
        power: float = 0.0,
        alpha: float = 1.0,
        n0: float = 0.0
    ) -> Reservoir:
        """
        Attach a pump reservoir, replacing any previous one.

        Must happen before the owning Cavity is built; the state layout
        is fixed at construction.
        """
        self.reservoir = Reservoir(coupling, tau, power, alpha, n0)
        return self.reservoir

    def check(self, n_polaritons: int, n_phonons: int, label: str = "Polariton"):
        """
        Validate that every link points into the arenas.

        Raises:
            EntityIndexError: if a neighbour or phonon index is out of range
        """
        for k, link in enumerate(self.couplings):
            if not 0 <= link.neighbor < n_polaritons:
                raise EntityIndexError(
                    f"{label} link {k}: neighbour index {link.neighbor} out of range "
                    f"({n_polaritons} polaritons)")
            if not 0 <= link.phonon < n_phonons:
                raise EntityIndexError(
                    f"{label} link {k}: phonon index {link.phonon} out of range "
                    f"({n_phonons} phonons)")

    def derivative(
        self,
        t: float,
        polaritons: Sequence['PolaritonMode'],
        phonons: Sequence['PhononMode']
    ) -> complex:
        """
        Compute da/dt from the current amplitudes of all entities.

        Args:
            t: Global time
            polaritons: Polariton arena (for neighbour amplitudes)
            phonons: Phonon arena (for positions and frequencies)

        Returns:
            Complex derivative
        """
        a = self.value
        n = self.reservoir.value if self.reservoir is not None else 0.0
        xi = self.reservoir.coupling if self.reservoir is not None else 0.0

        drv = a * (-1j * self.gamma + self.U * (a.real ** 2 + a.imag ** 2) + 1j * xi * n)
        if self.drive_amplitude != 0:
            drv += self.drive_amplitude * np.exp(1j * self.drive_detuning * t)

        for link in self.couplings:
            phonon = phonons[link.phonon]
            phase = link.sign * (phonon.frequency + link.delta) * t
            hopping = link.J + link.g * phonon.position
            drv += hopping * np.exp(1j * phase) * polaritons[link.neighbor].value

        return complex(-1j * drv)


class PhononMode:
    """
    Damped mechanical oscillator driven by polariton back-action.

    Attributes:
        Omega: Mechanical frequency
        Gamma: Mechanical damping
        position: Displacement x
        velocity: Velocity ẋ
        pairings: Back-action sources
    """

    def __init__(
        self,
        Omega: float = 20.0,
        Gamma: float = 0.05,
        position: float = 0.0,
        velocity: float = 0.0
    ):
        self.Omega = Omega
        self.Gamma = Gamma
        self.position = position
        self.velocity = velocity
        self.pairings: List[Pairing] = []

    def __repr__(self) -> str:
        return (f"PhononMode(Omega={self.Omega}, Gamma={self.Gamma}, "
                f"position={self.position}, velocity={self.velocity}, "
                f"pairings={len(self.pairings)})")

    @property
    def frequency(self) -> float:
        return self.Omega

    def add_pairing(self, sites: Tuple[int, int], delta: float = 0.0, coupling: float = 1.0) -> Pairing:
        """Add the beat note a_{sites[0]} a_{sites[1]}* as a back-action source."""
        pairing = Pairing(tuple(sites), delta, coupling)
        self.pairings.append(pairing)
        return pairing

    def check(self, n_polaritons: int, label: str = "Phonon"):
        """
        Validate pairing records.

        Raises:
            ConfigurationError: if a pairing does not name exactly two sites
            EntityIndexError: if a site index is out of range
        """
        for k, pairing in enumerate(self.pairings):
            if len(pairing.sites) != 2:
                raise ConfigurationError(
                    f"{label} pairing {k}: expected 2 sites, got {len(pairing.sites)}")
            for site in pairing.sites:
                if not 0 <= site < n_polaritons:
                    raise EntityIndexError(
                        f"{label} pairing {k}: site index {site} out of range "
                        f"({n_polaritons} polaritons)")

    def second_derivative(self, t: float, polaritons: Sequence[PolaritonMode]) -> float:
        """
        Compute the acceleration ẍ.

        Args:
            t: Global time
            polaritons: Polariton arena (for the paired amplitudes)
        """
        accel = -self.Omega ** 2 * self.position - self.Gamma * self.velocity

        backaction = 0j
        for pairing in self.pairings:
            first, second = pairing.sites
            backaction += (pairing.coupling
                           * polaritons[first].value
                           * polaritons[second].value.conjugate()
                           * np.exp(-1j * (self.Omega + pairing.delta) * t))

        accel -= 2.0 * self.Omega * self.Gamma * backaction.real
        return float(accel)
