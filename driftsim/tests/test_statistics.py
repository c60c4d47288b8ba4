# driftsim/tests/test_statistics.py
import math

import numpy as np
import pytest

from driftsim.physics.carriers.statistics import (
    BLAKEMORE_GAMMA,
    Distribution,
    degeneracy_factor,
    fermi_dirac_one_half,
    log_occupation,
    occupation,
)
from driftsim.utils.errors import ConfigurationError

ETA = np.linspace(-40.0, 20.0, 121)


@pytest.mark.parametrize("dist", list(Distribution))
def test_occupation_is_monotone_and_finite(dist):
    F = occupation(dist, ETA)
    assert np.all(np.isfinite(F))
    assert np.all(np.diff(F) > 0.0)


@pytest.mark.parametrize("dist", list(Distribution))
def test_log_occupation_matches_log_of_occupation(dist):
    eta = np.linspace(-20.0, 20.0, 41)
    np.testing.assert_allclose(log_occupation(dist, eta), np.log(occupation(dist, eta)), rtol=1e-12, atol=1e-12)


@pytest.mark.parametrize("dist", list(Distribution))
def test_nondegenerate_limit_is_boltzmann(dist):
    assert math.isclose(occupation(dist, -30.0), math.exp(-30.0), rel_tol=1e-6)


def test_blakemore_saturates():
    assert math.isclose(occupation(Distribution.BLAKEMORE, 60.0), 1.0 / BLAKEMORE_GAMMA, rel_tol=1e-12)


def test_fermi_dirac_one_half_known_value():
    # normalized F_{1/2}(0) = 0.765147...
    assert math.isclose(fermi_dirac_one_half(0.0), 0.765147, rel_tol=5e-3)


def test_degeneracy_factor():
    assert degeneracy_factor(Distribution.BOLTZMANN, 5.0) == pytest.approx(1.0)
    g = degeneracy_factor(Distribution.FERMI_DIRAC_MINUS_ONE, np.linspace(-10.0, 20.0, 31))
    assert np.all(np.diff(g) > 0.0)
    assert g[0] == pytest.approx(1.0, rel=1e-4)


def test_scalar_in_scalar_out():
    assert isinstance(occupation(Distribution.BLAKEMORE, 0.0), float)
    assert isinstance(log_occupation(Distribution.FERMI_DIRAC_ONE_HALF, 1.0), float)


def test_parse_accepts_spellings():
    assert Distribution.parse("Fermi-Dirac one half") is Distribution.FERMI_DIRAC_ONE_HALF
    assert Distribution.parse(Distribution.BOLTZMANN) is Distribution.BOLTZMANN
    with pytest.raises(ConfigurationError):
        Distribution.parse("maxwell")


@pytest.mark.parametrize("dist", list(Distribution))
@pytest.mark.parametrize("eta", [0.0, 1, np.float64(-2.5), np.array(3.0)])
def test_scalar_like_inputs_give_floats(dist, eta):
    F = occupation(dist, eta)
    assert isinstance(F, float)
    assert isinstance(log_occupation(dist, eta), float)
    assert isinstance(degeneracy_factor(dist, eta), float)
    assert F == pytest.approx(float(occupation(dist, np.array([float(eta)]))[0]))


def test_array_input_keeps_shape():
    out = occupation(Distribution.BOLTZMANN, np.zeros((2, 3)))
    assert out.shape == (2, 3)
    np.testing.assert_array_equal(out, 1.0)
