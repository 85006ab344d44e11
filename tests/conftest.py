"""Shared fixtures: reference orbits and a smooth analytic trajectory."""

import numpy as np
import pytest

from kludgesf.orbits.trajectory import circular_equatorial_constants, circular_equatorial_orbit
from kludgesf.parameters import EMRIParameters


@pytest.fixture
def schwarzschild_params():
    """a = 0, q = 1e-5, E and L of the r = 10 circular orbit."""
    E, L, _ = circular_equatorial_constants(10.0, 0.0)
    return EMRIParameters(M=1.0e6, mu=10.0, a=0.0, E=E, L=L, C=0.0)


@pytest.fixture
def circular_orbit_t():
    return circular_equatorial_orbit(10.0, 0.0, 1.0, n_points=41, h=1.0, sampling="t")


@pytest.fixture
def analytic_path():
    """
    x(t) = (cos t + 0.3 t, sin 1.3t, 0.5 cos 0.7t) with exact velocity and acceleration.
    Returns a callable t -> (x, v, a), each of shape (3, len(t)).
    """
    def path(t):
        t = np.atleast_1d(np.asarray(t, dtype=float))
        x = np.array([np.cos(t) + 0.3 * t, np.sin(1.3 * t), 0.5 * np.cos(0.7 * t)])
        v = np.array([-np.sin(t) + 0.3, 1.3 * np.cos(1.3 * t), -0.35 * np.sin(0.7 * t)])
        a = np.array([-np.cos(t), -1.69 * np.sin(1.3 * t), -0.245 * np.cos(0.7 * t)])
        return x, v, a
    return path
