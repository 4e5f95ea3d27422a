"""
Polaritons - Driven-dissipative polariton networks with optomechanical coupling.
"""

from .modes import PolaritonMode, PhononMode, Reservoir, Coupling, Pairing
from .cavity import Cavity, randomize_state
from .integrators import RK4Stepper, DormandPrinceStepper, rk4_step, dopri5_step
from .config import (
    CavityConfig,
    Section,
    build_cavity,
    load_config,
    parse_expression,
)
from .drive import DriveTarget, apply_drive
from .observables import StationaryAverages, time_average
from .sweep import (
    SweepConfig,
    SweepResult,
    sweep_values,
    run_job,
    run_sweep,
    format_result,
    dump_trajectory,
)
from .errors import (
    CavityError,
    ConfigurationError,
    ReferenceNotFoundError,
    ExpressionError,
    EntityIndexError,
    IntegrationError,
)

__version__ = "0.1.0"

__all__ = [
    # Entities
    'PolaritonMode',
    'PhononMode',
    'Reservoir',
    'Coupling',
    'Pairing',
    # System
    'Cavity',
    'randomize_state',
    'RK4Stepper',
    'DormandPrinceStepper',
    'rk4_step',
    'dopri5_step',
    # Configuration
    'CavityConfig',
    'Section',
    'build_cavity',
    'load_config',
    'parse_expression',
    # Driving and sweeps
    'DriveTarget',
    'apply_drive',
    'StationaryAverages',
    'time_average',
    'SweepConfig',
    'SweepResult',
    'sweep_values',
    'run_job',
    'run_sweep',
    'format_result',
    'dump_trajectory',
    # Errors
    'CavityError',
    'ConfigurationError',
    'ReferenceNotFoundError',
    'ExpressionError',
    'EntityIndexError',
    'IntegrationError',
]
