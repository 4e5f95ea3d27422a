"""
Declarative cavity descriptions.

A description is a sequence of sections, each with a type, an optional
name, and key/value parameters. INI files use section headers of the form
``[type name]``:

    [global]
    random_seed = 7

    [polariton site_1]
    gamma = 1.0
    initial_real = uniform(0, 1)

    [phonon mech]
    omega = 20.0

    [coupling c12]
    from = site_1
    to = site_2
    phonon = mech

    [pairing p]
    phonon = mech
    sites = site_1, site_2

YAML files hold the same data as a mapping of section headers to
parameter mappings. Entities are created by name in file order and every
name reference is resolved to an arena index before the Cavity is built.
"""

import configparser
import re
import numpy as np
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .cavity import Cavity, randomize_state
from .errors import ConfigurationError, ExpressionError, ReferenceNotFoundError
from .modes import PhononMode, PolaritonMode

SECTION_TYPES = ('global', 'polariton', 'phonon', 'reservoir', 'coupling', 'pairing')

_DISTRIBUTION = re.compile(
    r'^\s*([A-Za-z]+)\s*\(\s*([^,()]+?)\s*,\s*([^,()]+?)\s*\)\s*$'
)


@dataclass
class Section:
    """One declaration: ``[kind name]`` followed by key/value parameters."""
    kind: str
    name: str
    values: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        value = self.values.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            return default
        return value


def parse_expression(text: Union[str, float, int], rng: np.random.Generator) -> float:
    """
    Evaluate a numeric parameter.

    Accepts a literal number, ``uniform(a, b)`` or ``normal(mean, std)``
    (first letter may be capitalised). Distributions draw from rng.

    Raises:
        ExpressionError: if the text is not a number or known distribution
    """
    if isinstance(text, bool):
        raise ExpressionError(str(text))
    if isinstance(text, (int, float)):
        return float(text)

    stripped = str(text).strip()
    try:
        return float(stripped)
    except ValueError:
        pass

    match = _DISTRIBUTION.match(stripped)
    if match:
        name, first, second = match.groups()
        try:
            a, b = float(first), float(second)
        except ValueError:
            raise ExpressionError(str(text)) from None
        try:
            if name in ('uniform', 'Uniform'):
                return float(rng.uniform(a, b))
            if name in ('normal', 'Normal'):
                return float(rng.normal(a, b))
        except ValueError:
            raise ExpressionError(str(text)) from None

    raise ExpressionError(str(text))


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip() in ('true', 'True', '1', 'yes')


def _split_header(header: str) -> Tuple[str, str]:
    parts = header.strip().split(None, 1)
    if not parts:
        raise ConfigurationError("Empty section header")
    kind = parts[0]
    name = parts[1].strip() if len(parts) > 1 else ''
    if kind not in SECTION_TYPES:
        raise ConfigurationError(f"Unknown section type '{kind}' in [{header.strip()}]")
    return kind, name


def read_ini(text: str) -> List[Section]:
    """Parse INI text into sections, preserving file order and key case."""
    # everything after the first # on a line is a comment
    text = "\n".join(line.split('#', 1)[0] for line in text.splitlines())
    parser = configparser.ConfigParser(
        comment_prefixes=(';',),
        interpolation=None,
        strict=True,
    )
    parser.optionxform = str
    try:
        parser.read_string(text)
    except configparser.Error as e:
        raise ConfigurationError(f"Malformed description: {e}") from e

    sections = []
    for header in parser.sections():
        kind, name = _split_header(header)
        sections.append(Section(kind, name, dict(parser.items(header))))
    return sections


def read_yaml(text: str) -> List[Section]:
    """Parse YAML text (mapping of ``"kind name"`` to parameters) into sections."""
    data = yaml.safe_load(text) or {}
    if not isinstance(data, Mapping):
        raise ConfigurationError("YAML description must be a mapping of sections")

    sections = []
    for header, values in data.items():
        kind, name = _split_header(str(header))
        if values is None:
            values = {}
        if not isinstance(values, Mapping):
            raise ConfigurationError(f"Section [{header}] must be a mapping")
        sections.append(Section(kind, name, {str(k): v for k, v in values.items()}))
    return sections


def read_description(path: Union[str, Path]) -> List[Section]:
    """Read a description file; ``.yaml``/``.yml`` as YAML, anything else as INI."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Cannot open config file: {path}")
    text = path.read_text(encoding='utf-8')
    if path.suffix.lower() in ('.yaml', '.yml'):
        return read_yaml(text)
    return read_ini(text)


@dataclass
class CavityConfig:
    """
    A Cavity built from a description, with its name tables.

    Attributes:
        cavity: The assembled system
        polariton_ids: Polariton name -> arena index
        phonon_ids: Phonon name -> arena index
        seed: Seed read from the description, if any
    """
    cavity: Cavity
    polariton_ids: Dict[str, int]
    phonon_ids: Dict[str, int]
    seed: Optional[int] = None

    def polariton_id(self, name: str) -> int:
        if name not in self.polariton_ids:
            raise ReferenceNotFoundError(name, 'polariton')
        return self.polariton_ids[name]

    def phonon_id(self, name: str) -> int:
        if name not in self.phonon_ids:
            raise ReferenceNotFoundError(name, 'phonon')
        return self.phonon_ids[name]

    def polariton(self, name: str) -> PolaritonMode:
        return self.cavity.get_polariton(self.polariton_id(name))

    def phonon(self, name: str) -> PhononMode:
        return self.cavity.get_phonon(self.phonon_id(name))


def _seed_from(sections: List[Section]) -> Optional[int]:
    for section in sections:
        if section.kind != 'global':
            continue
        seed = section.get('random_seed')
        if seed is None or str(seed).strip() == 'auto':
            return None
        try:
            return int(seed)
        except ValueError:
            raise ConfigurationError(f"Invalid random_seed: {seed}") from None
    return None


def _resolve(table: Dict[str, int], name: Any, kind: str) -> int:
    name = '' if name is None else str(name).strip()
    if name not in table:
        raise ReferenceNotFoundError(name, kind)
    return table[name]


def _register(table: Dict[str, int], section: Section, count: int):
    if not section.name:
        raise ConfigurationError(f"[{section.kind}] section needs a name")
    if section.name in table:
        raise ConfigurationError(f"Duplicate {section.kind} name: {section.name}")
    table[section.name] = count


def _sites(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value]
    text = '' if value is None else str(value)
    if ',' not in text:
        raise ConfigurationError(f"Pairing sites must be comma-separated, got '{text}'")
    return [s.strip() for s in text.split(',')]


def build_cavity(
    sections: List[Section],
    rng: Optional[np.random.Generator] = None,
    verbose: bool = False
) -> CavityConfig:
    """
    Create entities, resolve name references and assemble the Cavity.

    Entities are built in phases (polaritons, phonons, reservoirs,
    couplings, pairings); within a phase, file order is creation order.

    Args:
        sections: Parsed description
        rng: Generator for distribution expressions. If None, one is
            seeded from ``global.random_seed`` (or fresh entropy)
        verbose: Print a short summary

    Returns:
        CavityConfig

    Raises:
        ReferenceNotFoundError: on any unresolved name
        ConfigurationError: on malformed sections
        ExpressionError: on unparsable parameter values
    """
    seed = _seed_from(sections)
    if rng is None:
        rng = np.random.default_rng(seed)

    def number(section: Section, key: str, default: float) -> float:
        value = section.get(key)
        if value is None:
            return default
        return parse_expression(value, rng)

    by_kind: Dict[str, List[Section]] = {kind: [] for kind in SECTION_TYPES}
    for section in sections:
        by_kind[section.kind].append(section)

    polaritons: List[PolaritonMode] = []
    phonons: List[PhononMode] = []
    polariton_ids: Dict[str, int] = {}
    phonon_ids: Dict[str, int] = {}

    # Phase 1: polaritons
    for section in by_kind['polariton']:
        _register(polariton_ids, section, len(polaritons))
        p = PolaritonMode(number(section, 'gamma', 1.0), number(section, 'U', 0.0))
        p.value = complex(number(section, 'initial_real', 0.0), number(section, 'initial_imag', 0.0))
        drive = complex(number(section, 'drive_real', 0.0), number(section, 'drive_imag', 0.0))
        if drive != 0:
            p.set_driving(drive, number(section, 'drive_detuning', 0.0))
        polaritons.append(p)

    # Phase 2: phonons
    for section in by_kind['phonon']:
        _register(phonon_ids, section, len(phonons))
        ph = PhononMode(number(section, 'omega', 20.0), number(section, 'gamma', 0.05))
        ph.position = number(section, 'initial_position', 0.0)
        ph.velocity = number(section, 'initial_velocity', 0.0)
        phonons.append(ph)

    # Phase 3: reservoirs
    targeted = set()
    for section in by_kind['reservoir']:
        target = _resolve(polariton_ids, section.get('target'), "reservoir 'target'")
        if target in targeted:
            raise ConfigurationError(
                f"Polariton '{section.get('target')}' already has a reservoir")
        targeted.add(target)
        # alpha is given squared in descriptions
        polaritons[target].add_reservoir(
            coupling=number(section, 'coupling', 1.0),
            tau=number(section, 'tau', 1.0),
            power=number(section, 'power', 0.0),
            alpha=float(np.sqrt(number(section, 'alpha', 1.0))),
            n0=number(section, 'n0', 0.0),
        )

    # Phase 4: couplings
    for section in by_kind['coupling']:
        source = _resolve(polariton_ids, section.get('from'), "coupling 'from'")
        target = _resolve(polariton_ids, section.get('to'), "coupling 'to'")
        phonon = _resolve(phonon_ids, section.get('phonon'), "coupling 'phonon'")
        polaritons[source].connect(
            target, phonon,
            J=number(section, 'J', 0.0),
            g=number(section, 'g', 1.0),
            delta=number(section, 'delta', 0.0),
            above=parse_bool(section.get('above', True)),
        )

    # Phase 5: pairings
    for section in by_kind['pairing']:
        phonon = _resolve(phonon_ids, section.get('phonon'), "pairing 'phonon'")
        names = _sites(section.get('sites'))
        if len(names) != 2:
            raise ConfigurationError(f"Pairing needs exactly two sites, got {names}")
        sites = tuple(_resolve(polariton_ids, name, "pairing 'sites'") for name in names)
        phonons[phonon].add_pairing(
            sites,
            delta=number(section, 'delta', 0.0),
            coupling=number(section, 'g', 1.0),
        )

    settings = by_kind['global'][0] if by_kind['global'] else Section('global', '')
    cavity = Cavity(
        polaritons, phonons,
        t0=number(settings, 'time', 0.0),
        time_step=number(settings, 'time_step', 1e-3),
        abs_tol=number(settings, 'abs_tol', 1e-6),
        rel_tol=number(settings, 'rel_tol', 1e-6),
    )
    randomize_state(
        cavity, rng,
        polariton_amplitude=number(settings, 'random_polariton', 0.0),
        phonon_amplitude=number(settings, 'random_phonon', 0.0),
        reservoir_amplitude=number(settings, 'random_reservoir', 0.0),
    )

    if verbose:
        print("Loaded cavity description:")
        print(f"  {cavity.n_polaritons} polaritons")
        print(f"  {cavity.n_phonons} phonons")
        print(f"  {cavity.n_reservoirs} reservoirs")
        print(f"  dimension = {cavity.dimension}")

    return CavityConfig(cavity, polariton_ids, phonon_ids, seed)


def load_config(
    path: Union[str, Path],
    rng: Optional[np.random.Generator] = None,
    verbose: bool = False
) -> CavityConfig:
    """
    Read a description file and build its Cavity.

    Args:
        path: INI (``.ini``, ``.build``, ...) or YAML file
        rng: Generator for distribution expressions (see build_cavity)
        verbose: Print a short summary

    Returns:
        CavityConfig
    """
    return build_cavity(read_description(path), rng=rng, verbose=verbose)
