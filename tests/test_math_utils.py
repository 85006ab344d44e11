"""Tests for the finite-difference stencil library and the Fourier fit backend."""

import numpy as np
import pytest

from kludgesf.utils.fourier_fit import fitting_frequencies, fitting_frequencies_2, fourier_fit
from kludgesf.utils.math_utils import (
    compute_derivative,
    compute_sixth_derivative,
    compute_third_derivative,
    finite_difference_series,
    fornberg_weights,
    stencil_size,
)


def test_fornberg_central_second_derivative():
    w = fornberg_weights([-1, 0, 1], 2)[:, 2]
    assert np.allclose(w, [1.0, -2.0, 1.0])


def test_stencil_sizes():
    assert stencil_size(1, 6) == 7
    assert stencil_size(2, 6) == 7
    assert stencil_size(6, 6) == 11


@pytest.mark.parametrize("compute_at", [0, 3, 10, 17, 20])
def test_polynomial_derivatives_are_exact(compute_at):
    """Interior and shifted edge windows differentiate low-order polynomials exactly."""
    h = 0.1
    t = h * np.arange(21)
    f = 2.0 * t**5 - t**3 + 4.0
    t0 = t[compute_at]
    assert compute_third_derivative(compute_at, f, h) == pytest.approx(120.0 * t0**2 - 6.0, rel=1e-6, abs=1e-6)


def test_sixth_derivative_of_exponential():
    h = 0.2
    t = h * np.arange(41)
    f = np.exp(0.5 * t)
    assert compute_sixth_derivative(20, f, h) == pytest.approx(0.5**6 * np.exp(0.5 * t[20]), rel=1e-5)


def test_series_derivative_everywhere():
    h = 0.02
    t = h * np.arange(200)
    d2 = finite_difference_series(np.sin(t), h, 2)
    assert np.allclose(d2, -np.sin(t), atol=1e-7)


def test_invalid_requests_raise():
    with pytest.raises(ValueError):
        compute_derivative(7, 5, np.zeros(30), 0.1)
    with pytest.raises(ValueError):
        compute_derivative(6, 2, np.zeros(8), 0.1)
    with pytest.raises(ValueError):
        finite_difference_series(np.zeros(5), 0.1, 2)


def test_fitting_frequency_sets():
    assert np.allclose(fitting_frequencies_2(1, 1.0, 0.3), [0.3, 0.7, 1.0, 1.3])
    # undefined fundamentals are dropped
    assert np.allclose(fitting_frequencies(3, [0.2, 1e10, 1e10]), [0.2, 0.4, 0.6])
    with pytest.raises(ValueError):
        fitting_frequencies(2, [1e10, 1e10, 1e10])


def test_fourier_fit_derivatives():
    omega = 0.2
    t = np.linspace(0.0, 100.0, 400)
    y = 1.0 + 0.5 * np.cos(omega * t) + 0.2 * np.sin(2 * omega * t) + 0.1 * np.cos(3 * omega * t + 0.3)
    fit = fourier_fit(t, y, 3, [omega, 1e10, 1e10])
    assert fit.chisq < 1e-20

    t0 = np.array([37.0])
    exact_3 = (0.5 * omega**3 * np.sin(omega * t0)
               - 0.2 * (2 * omega)**3 * np.cos(2 * omega * t0)
               + 0.1 * (3 * omega)**3 * np.sin(3 * omega * t0 + 0.3))
    assert fit.derivative(t0, 3) == pytest.approx(exact_3, rel=1e-8)
    assert fit.derivative(t0, 0) == pytest.approx(
        1.0 + 0.5 * np.cos(omega * t0) + 0.2 * np.sin(2 * omega * t0) + 0.1 * np.cos(3 * omega * t0 + 0.3))
