"""
Driving-parameter sweeps.

A sweep runs one independent job per driving value: build a fresh cavity,
apply the drive, integrate through the transient, then average the
stationary observables. Each job yields one tab-separated line

    value \\t <|a_0|²> ... \\t <x_0²> ... \\t <n_0> ...

so jobs can run in parallel elsewhere and be concatenated in index order.
"""

import numpy as np
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Sequence, TextIO, Union, List

from .cavity import Cavity
from .drive import DriveTarget, apply_drive
from .observables import StationaryAverages, time_average


@dataclass
class SweepConfig:
    """
    Sweep range and run lengths.

    Attributes:
        start: First driving value
        stop: Last driving value
        steps: Number of driving values (jobs)
        transient: Steps discarded before averaging
        stationary: Steps averaged
        adaptive: Use the error-controlled stepper
        dt: Fixed step size when adaptive is False
    """
    start: float = 0.0
    stop: float = 15.0
    steps: int = 100
    transient: int = 10_000_000
    stationary: int = 500_000
    adaptive: bool = True
    dt: Optional[float] = None

    def __post_init__(self):
        if self.steps <= 0:
            raise ValueError(f"steps must be positive, got {self.steps}")
        if self.transient < 0 or self.stationary <= 0:
            raise ValueError("transient must be >= 0 and stationary > 0")


@dataclass
class SweepResult:
    """Outcome of one sweep job."""
    job_index: int
    value: float
    averages: StationaryAverages


def sweep_values(config: SweepConfig) -> np.ndarray:
    """Driving values of all jobs."""
    return np.linspace(config.start, config.stop, config.steps)


def run_job(
    build: Callable[[], Cavity],
    config: SweepConfig,
    job_index: int,
    targets: Sequence[DriveTarget],
    verbose: bool = False
) -> SweepResult:
    """
    Run a single sweep job.

    Args:
        build: Factory returning a fresh, fully initialised Cavity
        config: Sweep configuration
        job_index: Which driving value to use
        targets: Where the driving value acts
        verbose: Print progress

    Returns:
        SweepResult
    """
    values = sweep_values(config)
    if not 0 <= job_index < len(values):
        raise IndexError(f"job index {job_index} out of range (0..{len(values) - 1})")
    value = float(values[job_index])

    cavity = build()
    apply_drive(cavity, targets, value)

    if verbose:
        print(f"  [{job_index + 1}/{len(values)}] value={value:.4f}, dimension={cavity.dimension}")

    cavity.run(config.transient, adaptive=config.adaptive, dt=config.dt)
    averages = time_average(cavity, config.stationary, adaptive=config.adaptive, dt=config.dt)
    return SweepResult(job_index, value, averages)


def format_result(result: SweepResult) -> str:
    """Tab-separated output line for one job (with trailing newline)."""
    fields = [result.value] + list(result.averages.as_array())
    return "\t".join(repr(float(f)) for f in fields) + "\n"


def run_sweep(
    build: Callable[[], Cavity],
    config: SweepConfig,
    targets: Sequence[DriveTarget],
    output: Union[str, Path],
    verbose: bool = True
) -> List[SweepResult]:
    """
    Run every job in index order and write all lines to one file.

    Args:
        build: Cavity factory, called once per job
        config: Sweep configuration
        targets: Where the driving value acts
        output: Output file path
        verbose: Print progress

    Returns:
        List of SweepResult in job order
    """
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)

    if verbose:
        print(f"Running {config.steps} jobs...")

    results = []
    with open(output, 'w', encoding='utf-8') as f:
        for job_index in range(config.steps):
            result = run_job(build, config, job_index, targets, verbose=verbose)
            f.write(format_result(result))
            results.append(result)

    if verbose:
        print(f"Results written to: {output}")
    return results


def dump_trajectory(
    cavity: Cavity,
    n_steps: int,
    stream: TextIO,
    every: int = 1,
    adaptive: bool = True,
    dt: Optional[float] = None
) -> int:
    """
    Integrate and write ``time \\t state[0] ... state[N-1]`` lines.

    The initial state is written first, then every ``every``-th step.

    Returns:
        Number of lines written
    """
    if every <= 0:
        raise ValueError(f"every must be positive, got {every}")

    def write():
        fields = [cavity.get_time()] + list(cavity.get_state())
        stream.write("\t".join(repr(float(f)) for f in fields) + "\n")

    write()
    lines = 1
    for step in range(1, n_steps + 1):
        if adaptive:
            cavity.adaptive_step()
        else:
            cavity.do_step(cavity.get_time_step() if dt is None else dt)
        if step % every == 0:
            write()
            lines += 1
    return lines
