"""
Tests for declarative cavity descriptions.
"""

import pytest
import numpy as np
from polaritons import config as config_module
from polaritons.config import (
    Section,
    build_cavity,
    load_config,
    parse_expression,
    read_ini,
    read_yaml,
)
from polaritons.errors import (
    ConfigurationError,
    ExpressionError,
    ReferenceNotFoundError,
)


TWO_SITE_INI = """
# two sites, one phonon
[global]
random_seed = 11
time = 2.0
time_step = 5e-4

[polariton site_1]
gamma = 1.0
U = 0.5
initial_real = 0.3
initial_imag = -0.2
drive_real = 0.5
drive_detuning = 0.25

[polariton site_2]
gamma = 0.8
initial_real = uniform(0.0, 1.0)

[phonon mech]
omega = 20.0
gamma = 0.05
initial_position = 1.5

[reservoir r2]
target = site_2
tau = 600
power = 3.0
alpha = 3.25     # squared
n0 = 0.4

[coupling c12]
from = site_1
to = site_2
phonon = mech
J = 0.1
g = 1.0
above = true

[coupling c21]
from = site_2
to = site_1
phonon = mech
g = 1.0
above = false

[pairing p12]
phonon = mech
sites = site_1, site_2
g = 2.0
delta = 0.3
"""

TWO_SITE_YAML = """
global:
  random_seed: 11
polariton site_1:
  gamma: 1.0
  initial_real: 0.3
polariton site_2:
  gamma: 0.8
phonon mech:
  omega: 20.0
reservoir r2:
  target: site_2
  power: 3.0
  alpha: 3.25
coupling c12:
  from: site_1
  to: site_2
  phonon: mech
coupling c21:
  from: site_2
  to: site_1
  phonon: mech
  above: false
pairing p12:
  phonon: mech
  sites: [site_1, site_2]
"""


@pytest.fixture
def ini_path(tmp_path):
    path = tmp_path / "two_site.ini"
    path.write_text(TWO_SITE_INI)
    return path


def write(tmp_path, text, name="system.ini"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestParseExpression:
    """Tests for numeric parameter expressions."""

    @pytest.fixture
    def rng(self):
        return np.random.default_rng(0)

    def test_literals(self, rng):
        """Plain numbers parse as floats."""
        assert parse_expression("2.5", rng) == 2.5
        assert parse_expression(" -1e-3 ", rng) == -1e-3
        assert parse_expression(4, rng) == 4.0

    def test_uniform(self, rng):
        """uniform(a, b) draws inside [a, b)."""
        for _ in range(20):
            assert 1.0 <= parse_expression("uniform(1.0, 2.0)", rng) < 2.0

    def test_capitalised_normal(self, rng):
        """Normal(mean, std) is accepted."""
        value = parse_expression("Normal(5, 0)", rng)
        assert value == 5.0

    def test_reproducible(self):
        """Same generator seed gives the same draws."""
        a = parse_expression("normal(0, 1)", np.random.default_rng(4))
        b = parse_expression("normal(0, 1)", np.random.default_rng(4))
        assert a == b

    def test_unknown_distribution(self, rng):
        """Unknown distributions are parse errors naming the text."""
        with pytest.raises(ExpressionError, match=r"gauss\(0, 1\)") as exc:
            parse_expression("gauss(0, 1)", rng)
        assert exc.value.text == "gauss(0, 1)"

    def test_garbage(self, rng):
        """Non-numeric text is a parse error."""
        with pytest.raises(ExpressionError):
            parse_expression("abc", rng)
        with pytest.raises(ExpressionError):
            parse_expression("uniform(a, 1)", rng)

    def test_invalid_distribution_parameters(self, rng):
        """A negative standard deviation is reported with the expression text."""
        with pytest.raises(ExpressionError, match=r"normal\(0, -1\)"):
            parse_expression("normal(0, -1)", rng)


class TestLoadIni:
    """Tests for building a cavity from an INI description."""

    def test_counts_and_dimension(self, ini_path):
        """Two polaritons, one phonon, one reservoir: N = 7."""
        loaded = load_config(ini_path)
        cavity = loaded.cavity
        assert cavity.n_polaritons == 2
        assert cavity.n_phonons == 1
        assert cavity.n_reservoirs == 1
        assert cavity.dimension == 7
        assert loaded.polariton_ids == {"site_1": 0, "site_2": 1}
        assert loaded.phonon_ids == {"mech": 0}

    def test_parameters(self, ini_path):
        """Parameters land on the right entities."""
        loaded = load_config(ini_path)
        s1 = loaded.polariton("site_1")
        assert s1.gamma == 1.0
        assert s1.U == 0.5
        assert s1.value == 0.3 - 0.2j
        assert s1.drive_amplitude == 0.5
        assert s1.drive_detuning == 0.25
        assert loaded.phonon("mech").position == 1.5

    def test_reservoir_alpha_is_square_root(self, ini_path):
        """alpha is given squared in the description."""
        reservoir = load_config(ini_path).polariton("site_2").reservoir
        assert reservoir.alpha == pytest.approx(np.sqrt(3.25))
        assert reservoir.tau == 600.0
        assert reservoir.value == 0.4

    def test_links_resolved_to_indices(self, ini_path):
        """Couplings and pairings hold arena indices."""
        loaded = load_config(ini_path)
        c12 = loaded.polariton("site_1").couplings[0]
        c21 = loaded.polariton("site_2").couplings[0]
        assert (c12.neighbor, c12.phonon, c12.J, c12.above) == (1, 0, 0.1, True)
        assert (c21.neighbor, c21.phonon, c21.above) == (0, 0, False)

        pairing = loaded.phonon("mech").pairings[0]
        assert pairing.sites == (0, 1)
        assert pairing.coupling == 2.0
        assert pairing.delta == 0.3

    def test_global_settings(self, ini_path):
        """Start time and step size come from [global]."""
        cavity = load_config(ini_path).cavity
        assert cavity.get_time() == 2.0
        assert cavity.get_time_step() == 5e-4

    def test_state_packed(self, ini_path):
        """The loaded cavity starts from the described state."""
        cavity = load_config(ini_path).cavity
        state = cavity.get_state()
        assert state[0] == 0.3 and state[1] == -0.2
        assert state[4] == 1.5
        assert state[6] == 0.4

    def test_file_seed_reproducible(self, ini_path):
        """random_seed makes distribution draws reproducible."""
        a = load_config(ini_path).cavity.get_state()
        b = load_config(ini_path).cavity.get_state()
        np.testing.assert_array_equal(a, b)

    def test_explicit_rng_wins(self, ini_path):
        """An explicit generator overrides the file seed."""
        a = load_config(ini_path, rng=np.random.default_rng(1)).polariton("site_2").value
        b = load_config(ini_path, rng=np.random.default_rng(2)).polariton("site_2").value
        assert a != b

    def test_verbose_summary(self, ini_path, capsys):
        """verbose prints the entity counts and dimension."""
        load_config(ini_path, verbose=True)
        out = capsys.readouterr().out
        assert "2 polaritons" in out
        assert "dimension = 7" in out

    def test_missing_file(self, tmp_path):
        """A missing file is reported."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.ini")


class TestLoadYaml:
    """Tests for YAML descriptions."""

    def test_same_graph_as_ini(self, tmp_path):
        """YAML builds the same entity graph."""
        loaded = load_config(write(tmp_path, TWO_SITE_YAML, "two_site.yaml"))
        assert loaded.cavity.dimension == 7
        assert loaded.polariton("site_2").couplings[0].above is False
        assert loaded.phonon("mech").pairings[0].sites == (0, 1)

    def test_read_yaml_sections(self):
        """Headers split into kind and name."""
        sections = read_yaml(TWO_SITE_YAML)
        assert sections[1] == Section("polariton", "site_1", {"gamma": 1.0, "initial_real": 0.3})


class TestReferenceErrors:
    """Unresolved names abort loading before a Cavity exists."""

    def test_missing_coupling_target(self, tmp_path, monkeypatch):
        """An unknown 'to' name is reported by name and kind."""
        built = []
        original = config_module.Cavity

        def spy(*args, **kwargs):
            built.append(True)
            return original(*args, **kwargs)

        monkeypatch.setattr(config_module, "Cavity", spy)
        text = TWO_SITE_INI.replace("to = site_2", "to = site_3")

        with pytest.raises(ReferenceNotFoundError, match="site_3") as exc:
            load_config(write(tmp_path, text))
        assert exc.value.name == "site_3"
        assert exc.value.kind == "coupling 'to'"
        assert built == []

    def test_missing_coupling_source(self, tmp_path):
        """An unknown 'from' name is reported."""
        text = TWO_SITE_INI.replace("from = site_2", "from = ghost")
        with pytest.raises(ReferenceNotFoundError) as exc:
            load_config(write(tmp_path, text))
        assert (exc.value.name, exc.value.kind) == ("ghost", "coupling 'from'")

    def test_missing_reservoir_target(self, tmp_path):
        """An unknown reservoir target is reported."""
        text = TWO_SITE_INI.replace("target = site_2", "target = site_9")
        with pytest.raises(ReferenceNotFoundError, match="Reservoir 'target' not found: site_9"):
            load_config(write(tmp_path, text))

    def test_missing_pairing_site(self, tmp_path):
        """An unknown pairing site is reported."""
        text = TWO_SITE_INI.replace("sites = site_1, site_2", "sites = site_1, site_4")
        with pytest.raises(ReferenceNotFoundError) as exc:
            load_config(write(tmp_path, text))
        assert (exc.value.name, exc.value.kind) == ("site_4", "pairing 'sites'")

    def test_missing_phonon(self, tmp_path):
        """An unknown mediating phonon is reported."""
        text = TWO_SITE_INI.replace("[pairing p12]\nphonon = mech", "[pairing p12]\nphonon = drum")
        with pytest.raises(ReferenceNotFoundError) as exc:
            load_config(write(tmp_path, text))
        assert exc.value.kind == "pairing 'phonon'"

    def test_lookup_unknown_name(self, ini_path):
        """Name lookups on a loaded config fail for unknown names."""
        with pytest.raises(ReferenceNotFoundError):
            load_config(ini_path).polariton_id("site_5")


class TestMalformedDescriptions:
    """Structural problems in the description."""

    def test_sites_need_comma(self, tmp_path):
        """Pairing sites must be comma-separated."""
        text = TWO_SITE_INI.replace("sites = site_1, site_2", "sites = site_1 site_2")
        with pytest.raises(ConfigurationError, match="comma-separated"):
            load_config(write(tmp_path, text))

    def test_unknown_section_type(self):
        """Misspelled section types are not silently ignored."""
        with pytest.raises(ConfigurationError, match="Unknown section type"):
            read_ini("[polaritn a]\ngamma = 1\n")

    def test_duplicate_name(self):
        """Entity names must be unique per kind."""
        sections = [Section("polariton", "a"), Section("polariton", "a")]
        with pytest.raises(ConfigurationError, match="Duplicate polariton name"):
            build_cavity(sections)

    def test_duplicate_reservoir(self):
        """A polariton can own only one reservoir."""
        sections = [
            Section("polariton", "a"),
            Section("reservoir", "r1", {"target": "a"}),
            Section("reservoir", "r2", {"target": "a"}),
        ]
        with pytest.raises(ConfigurationError, match="already has a reservoir"):
            build_cavity(sections)

    def test_bad_number(self, tmp_path):
        """Unparsable parameters fail at load time."""
        text = TWO_SITE_INI.replace("gamma = 0.8", "gamma = fast")
        with pytest.raises(ExpressionError, match="fast"):
            load_config(write(tmp_path, text))

    def test_comment_without_space(self):
        """A # ends the value even when it follows the number directly."""
        sections = read_ini("[polariton a]\ngamma = 0.8# damping\n#U = 3\n")
        assert sections[0].values == {"gamma": "0.8"}
        assert build_cavity(sections).polariton("a").gamma == 0.8

    def test_non_positive_time_step(self, tmp_path):
        """A negative global time_step is rejected before integration."""
        text = TWO_SITE_INI.replace("time_step = 5e-4", "time_step = -1e-3")
        with pytest.raises(ConfigurationError, match="time step must be positive"):
            load_config(write(tmp_path, text))

    def test_keys_are_case_sensitive(self):
        """U and u are different keys."""
        sections = read_ini("[polariton a]\nU = 0.5\n")
        assert sections[0].values == {"U": "0.5"}


class TestRandomInitialConditions:
    """Global random initial-condition amplitudes."""

    def test_random_polariton(self):
        """random_polariton draws amplitudes within the given half-width."""
        sections = [
            Section("global", "", {"random_seed": "3", "random_polariton": "0.2"}),
            Section("polariton", "a"),
            Section("polariton", "b"),
        ]
        cavity = build_cavity(sections).cavity
        state = cavity.get_state()
        assert np.all(np.abs(state) <= 0.2)
        assert np.any(state != 0.0)
