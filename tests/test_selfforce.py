"""Tests for the radiation-reaction potentials, metric coupling terms and the self-force pipeline."""

import numpy as np
import pytest

from kludgesf import compute_self_force_cpu
from kludgesf.geometry.harmonic_coords import from_harmonic_position, harmonic_metric, to_harmonic_position
from kludgesf.geometry.kerr_metric import KerrMetric
from kludgesf.multipole.derivatives import SelfForceDerivatives
from kludgesf.multipole.moments import s_ij
from kludgesf.orbits.trajectory import circular_equatorial_constants, circular_equatorial_orbit
from kludgesf.parameters import EMRIParameters, SelfForceConfig
from kludgesf.selfforce.assembler import (
    SelfForceAssembler,
    a1_beta,
    contravariant_projector,
    gamma_factor,
    self_acceleration,
)
from kludgesf.selfforce.metric_coupling import coupling_terms, metric_deviation, metric_gradients
from kludgesf.selfforce.potentials import dv_rr_dx, dvi_rr_dx, v_rr, vi_rr, vi_rr_current_part
from kludgesf.utils.symmetrize import symmetrize_tensor


class FlatSpaceMetric:
    """Minkowski space in spherical coordinates; with a = M = 0 the harmonic map is Cartesian."""

    def metric(self, x_bl):
        r, th = x_bl[0], x_bl[1]
        return np.diag([-1.0, 1.0, r * r, (r * np.sin(th))**2])

    def inverse_metric(self, x_bl):
        r, th = x_bl[0], x_bl[1]
        return np.diag([-1.0, 1.0, 1.0 / (r * r), 1.0 / (r * np.sin(th))**2])

    def christoffel(self, x_bl):
        r, th = x_bl[0], x_bl[1]
        s, c = np.sin(th), np.cos(th)
        gamma = np.zeros((4, 4, 4))
        gamma[1, 2, 2] = -r
        gamma[1, 3, 3] = -r * s * s
        gamma[2, 1, 2] = gamma[2, 2, 1] = 1.0 / r
        gamma[2, 3, 3] = -s * c
        gamma[3, 1, 3] = gamma[3, 3, 1] = 1.0 / r
        gamma[3, 2, 3] = gamma[3, 3, 2] = c / s
        return gamma


def _random_derivatives(seed=0, scale=1.0):
    rng = np.random.default_rng(seed)

    def sym(rank):
        return scale * symmetrize_tensor(rng.normal(size=(3,) * rank), rank)

    return SelfForceDerivatives(
        Mij5=sym(2), Mij6=sym(2), Mij7=sym(2), Mij8=sym(2),
        Mijk7=sym(3), Mijk8=sym(3), Sij5=sym(2), Sij6=sym(2),
    )


# ---------------------------------------------------------------------
# potentials
# ---------------------------------------------------------------------

def test_potential_gradients_match_finite_difference():
    d = _random_derivatives()
    x = np.array([3.0, -2.0, 1.5])
    eps = 1e-4
    fd_v = np.zeros(3)
    fd_vi = np.zeros((3, 3))
    for a in range(3):
        dx = np.zeros(3)
        dx[a] = eps
        fd_v[a] = (v_rr(x + dx, d.Mij5, d.Mij7, d.Mijk7) - v_rr(x - dx, d.Mij5, d.Mij7, d.Mijk7)) / (2 * eps)
        fd_vi[:, a] = (vi_rr(x + dx, d.Mij6, d.Sij5) - vi_rr(x - dx, d.Mij6, d.Sij5)) / (2 * eps)
    assert np.allclose(dv_rr_dx(x, d.Mij5, d.Mij7, d.Mijk7), fd_v, rtol=1e-6, atol=1e-7)
    assert np.allclose(dvi_rr_dx(x, d.Mij6, d.Sij5), fd_vi, rtol=1e-6, atol=1e-7)


def test_current_quadrupole_structure_for_planar_motion():
    """x_3 = v_3 = 0: the in-plane block and S_33 vanish, S_13 and S_23 do not."""
    x = np.array([6.0, 4.0, 0.0])
    v = np.array([-0.2, 0.3, 0.0])
    S = np.array([[s_ij(x, v, 1e-3, i, j) for j in range(3)] for i in range(3)])
    assert S[0, 0] == 0.0 and S[0, 1] == 0.0 and S[1, 1] == 0.0 and S[2, 2] == 0.0
    assert abs(S[0, 2]) > 0.0 and abs(S[1, 2]) > 0.0


# ---------------------------------------------------------------------
# metric coupling
# ---------------------------------------------------------------------

def test_metric_gradients_match_finite_difference_of_harmonic_metric():
    spin = 0.7
    metric = KerrMetric(spin)
    x_bl = np.array([8.0, 1.0, 0.4])
    x_h = to_harmonic_position(x_bl, spin)
    grads = metric_gradients(metric, x_bl, spin)

    eps = 1e-5
    fd = np.zeros((3, 4, 4))
    for k in range(3):
        dx = np.zeros(3)
        dx[k] = eps
        gp = harmonic_metric(metric, from_harmonic_position(x_h + dx, spin), spin)
        gm = harmonic_metric(metric, from_harmonic_position(x_h - dx, spin), spin)
        fd[k] = (gp - gm) / (2 * eps)
    assert np.allclose(grads.dK, fd[:, 0, 0], atol=1e-8)
    assert np.allclose(grads.dKi, fd[:, 0, 1:], atol=1e-8)
    assert np.allclose(grads.dKij, fd[:, 1:, 1:], atol=1e-8)


def test_flat_space_has_no_metric_coupling():
    metric = FlatSpaceMetric()
    x_bl = np.array([7.0, 1.2, -0.5])
    dev = metric_deviation(metric, x_bl, 0.0, 0.0)
    grads = metric_gradients(metric, x_bl, 0.0, 0.0)
    assert np.allclose(dev.Kmunu, 0.0, atol=1e-12)
    assert np.allclose(dev.Qmunu, 0.0, atol=1e-12)
    for g in (grads.dK, grads.dKi, grads.dKij):
        assert np.allclose(g, 0.0, atol=1e-12)

    terms = coupling_terms(dev, grads, np.array([0.1, -0.2, 0.05]))
    for name in ("B", "C", "D"):
        assert getattr(terms, name) == pytest.approx(0.0, abs=1e-12)
    for name in ("Bi", "Ci", "Di"):
        assert np.allclose(getattr(terms, name), 0.0, atol=1e-12)


def test_flat_space_self_acceleration_is_projected_a1():
    metric = FlatSpaceMetric()
    d = _random_derivatives(seed=2, scale=1e-8)
    x_bl = np.array([7.0, 1.2, -0.5])
    x_h = to_harmonic_position(x_bl, 0.0, 0.0)
    v_h = np.array([0.1, -0.2, 0.05])

    a_h, a_bl = self_acceleration(x_h, v_h, x_bl, d, metric, 0.0, 0.0)

    gamma = 1.0 / np.sqrt(1.0 - v_h @ v_h)
    u = np.concatenate(([1.0], v_h))
    P = np.diag([-1.0, 1.0, 1.0, 1.0]) + gamma**2 * np.outer(u, u)
    expected = -gamma**2 * P @ a1_beta(x_h, v_h, d)
    assert np.allclose(a_h, expected, rtol=1e-9, atol=1e-12 * np.max(np.abs(expected)))
    assert a_bl[0] == a_h[0]


def test_gamma_factor_normalises_four_velocity():
    """Γ normalises u^α = Γ (1, v), so g_{αβ} + u_α u_β is orthogonal to u^α."""
    spin = 0.7
    metric = KerrMetric(spin)
    x_bl = np.array([8.0, 1.0, 0.4])
    dev = metric_deviation(metric, x_bl, spin)
    v = np.array([0.05, 0.2, -0.1])
    gamma = gamma_factor(dev, v)
    g_h = dev.Kmunu + np.diag([-1.0, 1.0, 1.0, 1.0])
    u_up = gamma * np.concatenate(([1.0], v))
    u_down = g_h @ u_up
    assert u_up @ u_down == pytest.approx(-1.0)
    # P_{αβ} with the index-lowered four-velocity
    P_cov = g_h + np.outer(u_down, u_down)
    assert np.allclose(P_cov @ u_up, 0.0, atol=1e-12)
    assert contravariant_projector(dev, v, gamma).shape == (4, 4)


# ---------------------------------------------------------------------
# assembler pipeline
# ---------------------------------------------------------------------

def test_test_particle_limit_is_exactly_zero(circular_orbit_t):
    params = EMRIParameters(M=1e6, mu=0.0, a=0.0)
    result = SelfForceAssembler(params, SelfForceConfig(compute_at=20)).compute(circular_orbit_t)
    assert np.all(result.a_sf_h == 0.0)
    assert np.all(result.a_sf_bl == 0.0)


def test_circular_schwarzschild_orbit(schwarzschild_params, circular_orbit_t):
    """Finite result; the current-quadrupole part of V_i vanishes for planar circular motion."""
    result = SelfForceAssembler(schwarzschild_params, SelfForceConfig(compute_at=20)).compute(circular_orbit_t)
    assert result.a_sf_h.shape == (4,)
    assert np.all(np.isfinite(result.a_sf_h))
    assert np.any(result.a_sf_h != 0.0)

    d = result.derivatives
    x_h = to_harmonic_position(circular_orbit_t.x_bl[:, 20], 0.0)
    current = vi_rr_current_part(x_h, d.Sij5)
    mass = vi_rr(x_h, d.Mij6, np.zeros((3, 3)))
    assert np.linalg.norm(current) <= 1e-6 * np.linalg.norm(mass)

    scale = np.max(np.abs(d.Sij5))
    assert scale > 0.0
    assert np.allclose(d.Sij5[:2, :2], 0.0, atol=1e-8 * scale)
    assert abs(d.Sij5[2, 2]) <= 1e-8 * scale


def test_mino_branch_matches_coordinate_time_branch(schwarzschild_params, circular_orbit_t):
    """λ-sampling with h_λ = h_t / V_t reproduces the t-sampled result on a circular orbit."""
    E, L = schwarzschild_params.E, schwarzschild_params.L
    vt = E * 10.0**3 / (10.0 - 2.0)
    mino_orbit = circular_equatorial_orbit(10.0, 0.0, n_points=41, h=1.0 / vt, sampling="mino")

    bl = SelfForceAssembler(schwarzschild_params, SelfForceConfig(h=1.0, compute_at=20)).compute(circular_orbit_t)
    mino = SelfForceAssembler(
        schwarzschild_params, SelfForceConfig(h=1.0 / vt, compute_at=20, time_parameter="mino")
    ).compute(mino_orbit)
    scale = np.max(np.abs(bl.a_sf_h))
    assert np.allclose(mino.a_sf_h, bl.a_sf_h, rtol=1e-4, atol=1e-6 * scale)


def test_threaded_pipeline_matches_serial(schwarzschild_params, circular_orbit_t):
    serial = SelfForceAssembler(schwarzschild_params, SelfForceConfig(compute_at=20)).compute(circular_orbit_t)
    threaded = SelfForceAssembler(
        schwarzschild_params, SelfForceConfig(compute_at=20, n_workers=4)).compute(circular_orbit_t)
    assert np.array_equal(serial.a_sf_h, threaded.a_sf_h)
    assert np.array_equal(serial.a_sf_bl, threaded.a_sf_bl)


def test_fourier_fit_backend_agrees_with_finite_difference(schwarzschild_params):
    omega = circular_equatorial_constants(10.0, 0.0)[2]
    orbit = circular_equatorial_orbit(10.0, 0.0, n_points=201, h=1.0)
    fd = SelfForceAssembler(schwarzschild_params, SelfForceConfig(compute_at=100)).compute(orbit)
    ff = SelfForceAssembler(schwarzschild_params, SelfForceConfig(
        compute_at=100, derivative_method="fourier_fit", n_harm=3,
        fit_frequencies=[omega, 1e10, 1e10])).compute(orbit)
    scale = np.max(np.abs(fd.a_sf_h))
    assert np.allclose(ff.a_sf_h, fd.a_sf_h, rtol=1e-3, atol=1e-4 * scale)


@pytest.mark.parametrize("config, message", [
    (SelfForceConfig(compute_at=20, time_parameter="tau"), "time_parameter"),
    (SelfForceConfig(compute_at=20, derivative_method="spline"), "derivative_method"),
    (SelfForceConfig(compute_at=20, time_parameter="mino"), "sampled"),
    (SelfForceConfig(compute_at=41), "compute_at"),
    (SelfForceConfig(compute_at=20, derivative_method="fourier_fit"), "fit_frequencies"),
])
def test_invalid_configuration_rejected(schwarzschild_params, circular_orbit_t, config, message):
    with pytest.raises(ValueError, match=message):
        SelfForceAssembler(schwarzschild_params, config).compute(circular_orbit_t)


def test_short_series_rejected(schwarzschild_params):
    orbit = circular_equatorial_orbit(10.0, 0.0, n_points=9)
    with pytest.raises(ValueError, match="too few"):
        SelfForceAssembler(schwarzschild_params, SelfForceConfig(compute_at=4)).compute(orbit)


def test_mino_branch_requires_orbital_constants():
    orbit = circular_equatorial_orbit(10.0, 0.0, n_points=41, sampling="mino")
    params = EMRIParameters(M=1e6, mu=10.0, a=0.0)
    with pytest.raises(ValueError, match="E, L and C"):
        SelfForceAssembler(params, SelfForceConfig(compute_at=20, time_parameter="mino")).compute(orbit)


def test_mismatched_array_lengths_rejected(schwarzschild_params, circular_orbit_t):
    circular_orbit_t.d2r_dt2 = circular_orbit_t.d2r_dt2[:30]
    with pytest.raises(ValueError, match="d2r_dt2"):
        SelfForceAssembler(schwarzschild_params, SelfForceConfig(compute_at=20)).compute(circular_orbit_t)


# ---------------------------------------------------------------------
# end-to-end entry point
# ---------------------------------------------------------------------

def test_entry_point_builds_reference_orbit():
    params = EMRIParameters(M=1e6, mu=10.0, a=0.5)
    config = SelfForceConfig(h=0.01, compute_at=20, time_parameter="mino")
    result = compute_self_force_cpu(params, config, r0=10.0, n_points=41)
    assert np.all(np.isfinite(result.a_sf_bl))
    assert np.any(result.a_sf_bl != 0.0)
    assert params.E is None and params.L is None and params.C is None


def test_entry_point_reused_parameters_follow_each_radius():
    """Orbital constants filled for one r0 do not leak into the next call."""
    config = SelfForceConfig(h=0.01, compute_at=20, time_parameter="mino")
    shared = EMRIParameters(M=1e6, mu=10.0, a=0.5)
    compute_self_force_cpu(shared, config, r0=10.0, n_points=41)
    reused = compute_self_force_cpu(shared, config, r0=14.0, n_points=41)
    fresh = compute_self_force_cpu(EMRIParameters(M=1e6, mu=10.0, a=0.5), config, r0=14.0, n_points=41)
    assert np.allclose(reused.a_sf_bl, fresh.a_sf_bl, rtol=1e-12, atol=0.0)
    assert np.allclose(reused.a_sf_h, fresh.a_sf_h, rtol=1e-12, atol=0.0)


def test_entry_point_keeps_given_orbital_constants():
    E, L, _ = circular_equatorial_constants(10.0, 0.5)
    params = EMRIParameters(M=1e6, mu=10.0, a=0.5, E=E, L=L, C=0.0)
    config = SelfForceConfig(h=0.01, compute_at=20, time_parameter="mino")
    given = compute_self_force_cpu(params, config, r0=10.0, n_points=41)
    filled = compute_self_force_cpu(EMRIParameters(M=1e6, mu=10.0, a=0.5), config, r0=10.0, n_points=41)
    assert np.array_equal(given.a_sf_bl, filled.a_sf_bl)
    assert (params.E, params.L, params.C) == (E, L, 0.0)


def test_entry_point_needs_orbit_or_radius():
    with pytest.raises(ValueError, match="r0"):
        compute_self_force_cpu(EMRIParameters(), SelfForceConfig())
