"""Tests for the multipole strain tensor, the TT projection and the waveform pipeline."""

import numpy as np
import pytest

from kludgesf import WaveformConfig, generate_kludge_waveform_cpu
from kludgesf.constants import GPC_IN_METERS, M_SUN_IN_METERS
from kludgesf.orbits.trajectory import circular_equatorial_orbit
from kludgesf.parameters import EMRIParameters
from kludgesf.waveforms.kludge_waveform import compute_kludge_waveform
from kludgesf.waveforms.multipole_radiation import ObserverInfo, project_to_tt, strain_tensor


def _zero_moments(n):
    return (np.zeros((3, 3, n)), np.zeros((3, 3, 3, n)), np.zeros((3, 3, 3, 3, n)),
            np.zeros((3, 3, n)), np.zeros((3, 3, 3, n)))


def test_observer_distance_in_black_hole_units():
    obs = ObserverInfo.from_gpc(1.0, 1e6, 0.3, 0.0)
    assert obs.R == pytest.approx(GPC_IN_METERS / (1e6 * M_SUN_IN_METERS))
    assert np.linalg.norm(obs.n) == pytest.approx(1.0)


def test_black_hole_mass_in_seconds():
    assert EMRIParameters(M=1e6).M_geom() == pytest.approx(4.9255, rel=1e-4)


def test_axisymmetric_quadrupole_seen_face_on_has_no_cross_polarisation():
    """M_ij = diag(α, α, β) viewed along z: h_cross = 0 and h_plus = 0."""
    n = 5
    Mij2, Mijk3, Mijkl4, Sij2, Sijk3 = _zero_moments(n)
    alpha = np.linspace(1.0, 2.0, n)
    Mij2[0, 0] = alpha
    Mij2[1, 1] = alpha
    Mij2[2, 2] = -2.0 * alpha
    obs = ObserverInfo(R=100.0, theta=0.0, phi=0.7)
    h_plus, h_cross = project_to_tt(strain_tensor(obs, Mij2, Mijk3, Mijkl4, Sij2, Sijk3), obs)
    assert np.allclose(h_cross, 0.0, atol=1e-15)
    assert np.allclose(h_plus, 0.0, atol=1e-15)


def test_quadrupole_strain_edge_on():
    """Only M_xx - M_yy seen from the x axis: h_plus = -(M_yy - M_zz) / R."""
    n = 3
    Mij2, Mijk3, Mijkl4, Sij2, Sijk3 = _zero_moments(n)
    Mij2[0, 0] = 1.0
    Mij2[1, 1] = -1.0
    obs = ObserverInfo(R=10.0, theta=0.5 * np.pi, phi=0.0)
    h = strain_tensor(obs, Mij2, Mijk3, Mijkl4, Sij2, Sijk3)
    assert np.allclose(h[0, 0], 0.2)
    h_plus, h_cross = project_to_tt(h, obs)
    # h_ΘΘ = h_zz = 0, h_ΦΦ = h_yy = -0.2
    assert np.allclose(h_plus, 0.1)
    assert np.allclose(h_cross, 0.0, atol=1e-15)


def test_test_particle_waveform_vanishes(circular_orbit_t):
    params = EMRIParameters(M=1e6, mu=0.0, a=0.0)
    wf = compute_kludge_waveform(circular_orbit_t, params, ObserverInfo(1e3, 0.4, 0.0))
    assert np.all(wf.h_plus == 0.0)
    assert np.all(wf.h_cross == 0.0)


def test_face_on_circular_orbit_has_equal_polarisations(schwarzschild_params):
    orbit = circular_equatorial_orbit(10.0, 0.0, n_points=201, h=2.0)
    wf = compute_kludge_waveform(orbit, schwarzschild_params, ObserverInfo(1e3, 0.0, 0.0), WaveformConfig(h=2.0))
    assert wf.h_ij.shape == (3, 3, 201)
    inner = slice(10, -10)
    hp = np.max(np.abs(wf.h_plus[inner]))
    hc = np.max(np.abs(wf.h_cross[inner]))
    assert hp > 0.0
    assert hc == pytest.approx(hp, rel=0.1)


def test_mino_sampled_waveform_matches_time_sampled(schwarzschild_params):
    E = schwarzschild_params.E
    vt = E * 10.0**3 / (10.0 - 2.0)
    obs = ObserverInfo(1e3, 0.6, 0.2)
    bl = compute_kludge_waveform(circular_equatorial_orbit(10.0, 0.0, n_points=101, h=1.0),
                                 schwarzschild_params, obs, WaveformConfig(h=1.0))
    mino = compute_kludge_waveform(
        circular_equatorial_orbit(10.0, 0.0, n_points=101, h=1.0 / vt, sampling="mino"),
        schwarzschild_params, obs, WaveformConfig(h=1.0 / vt, time_parameter="mino"))
    assert np.allclose(mino.t, bl.t)
    scale = np.max(np.abs(bl.h_plus))
    assert np.allclose(mino.h_plus, bl.h_plus, rtol=1e-6, atol=1e-8 * scale)
    assert np.allclose(mino.h_cross, bl.h_cross, rtol=1e-6, atol=1e-8 * scale)


def test_waveform_rejects_mismatched_sampling(schwarzschild_params, circular_orbit_t):
    with pytest.raises(ValueError, match="sampled"):
        compute_kludge_waveform(circular_orbit_t, schwarzschild_params, ObserverInfo(1e3, 0.4, 0.0),
                                WaveformConfig(time_parameter="mino"))


def test_entry_point_generates_finite_waveform():
    params = EMRIParameters(M=1e6, mu=10.0, a=0.9)
    t, h_plus, h_cross = generate_kludge_waveform_cpu(
        params, WaveformConfig(h=5.0), r0=8.0, n_points=121, D_L=1.0)
    assert t.shape == h_plus.shape == h_cross.shape == (121,)
    assert np.all(np.isfinite(h_plus)) and np.all(np.isfinite(h_cross))
    # q / R at 1 Gpc: strain of order 1e-21 .. 1e-23
    assert 1e-25 < np.max(np.abs(h_plus)) < 1e-18
