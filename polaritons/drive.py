"""
Driving configuration.

Maps a single scalar driving parameter (the quantity swept across jobs)
onto the resonant drives and reservoir pump powers of chosen sites.
"""

from typing import Sequence
from dataclasses import dataclass

from .cavity import Cavity
from .errors import ConfigurationError

DRIVE_KINDS = ('resonant', 'pump')


@dataclass
class DriveTarget:
    """
    How the driving parameter acts on one polariton.

    Attributes:
        site: Polariton index
        kind: 'resonant' sets the coherent drive amplitude,
              'pump' sets the reservoir pump power
        scale: Multiplier applied to the driving parameter
        detuning: Drive detuning (resonant only)
    """
    site: int
    kind: str = 'resonant'
    scale: float = 1.0
    detuning: float = 0.0

    def __post_init__(self):
        if self.kind not in DRIVE_KINDS:
            raise ConfigurationError(
                f"Unknown drive kind '{self.kind}', expected one of {DRIVE_KINDS}")


def apply_drive(cavity: Cavity, targets: Sequence[DriveTarget], value: float):
    """
    Set the driving parameter on every target.

    Drive amplitudes and pump powers are parameters, not state, so no
    repacking is needed.

    Args:
        cavity: System to drive
        targets: Where and how the parameter acts
        value: Driving parameter

    Raises:
        ConfigurationError: if a pump target has no reservoir
        EntityIndexError: if a target site does not exist
    """
    for target in targets:
        polariton = cavity.get_polariton(target.site)
        if target.kind == 'resonant':
            polariton.set_driving(target.scale * value, target.detuning)
        else:
            if polariton.reservoir is None:
                raise ConfigurationError(
                    f"Pump target polariton {target.site} has no reservoir")
            polariton.reservoir.set_power(target.scale * value)

