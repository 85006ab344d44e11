# src/kludgesf/selfforce/assembler.py
"""
自力 (self-force) 组装器：三阶段流水线，阶段之间完全同步。

  1. 坐标变换：BL 轨道采样 -> 谐和 Cartesian 坐标（对所有采样点向量化）；
  2. 多极矩 + 高阶导数：按独立指标组合并行，t 分支或 Mino 分支，最后对称化；
  3. 组装：辐射反作用势 + 度规耦合项 -> A1_β + A2_β，
     再经投影算符 P^{αβ} 乘以 -Γ²，空间分量变回 BL 坐标。

参考 arXiv:1109.0572v2 Eqs. 44-63, A1-A14。

与其他模块的关系：
- orbits.trajectory: 阶段 1；
- multipole.moments / multipole.derivatives: 阶段 2；
- selfforce.potentials / selfforce.metric_coupling: 阶段 3；
- core.selfforce_cpu: 端到端入口。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger

from ..geometry.harmonic_coords import from_harmonic_acceleration
from ..geometry.kerr_metric import KerrMetric, MetricProvider
from ..multipole.derivatives import (
    SelfForceDerivatives,
    finite_difference_backend,
    fourier_fit_backend,
    mino_lambda_derivatives,
    selfforce_moment_derivatives,
)
from ..multipole.moments import selfforce_moments
from ..orbits.trajectory import BLTrajectory, HarmonicTrajectory, to_harmonic_trajectory
from ..parameters import DERIVATIVE_METHODS, TIME_PARAMETERS, EMRIParameters, SelfForceConfig
from ..utils.math_utils import stencil_size
from ..utils.tensor_algebra import ETA_4, norm2_3d, otimes
from .metric_coupling import (
    MetricDeviation,
    coupling_terms,
    metric_deviation,
    metric_gradients,
)
from .potentials import dv_rr_dt, dv_rr_dx, dvi_rr_dt, dvi_rr_dx, v_rr, vi_rr


@dataclass
class SelfForceResult:
    """一次求值的输出：谐和坐标与 BL 坐标下的自加速度 4 矢量 (t, 1, 2, 3)。"""
    a_sf_h: np.ndarray
    a_sf_bl: np.ndarray
    compute_at: int
    derivatives: SelfForceDerivatives


# ---------------------------------------------------------------------
# Γ 因子与投影算符
# ---------------------------------------------------------------------

def gamma_factor(dev: MetricDeviation, v) -> float:
    """Γ = 1 / sqrt(1 - v² - K - 2 K_i v^i - K_ij v^i v^j)  (Eq. A3)"""
    return 1.0 / np.sqrt(1.0 - norm2_3d(v) - dev.K - 2.0 * (dev.Ki @ v) - v @ dev.Kij @ v)


def _four_velocity(v) -> np.ndarray:
    return np.concatenate(([1.0], v))


def contravariant_projector(dev: MetricDeviation, v, gamma: float) -> np.ndarray:
    """P^{αβ} = η^{αβ} + Q^{αβ} + Γ² u^α u^β,  u = (1, v)  (Eq. A1)"""
    return ETA_4 + dev.Qmunu + gamma**2 * otimes(_four_velocity(v))


# ---------------------------------------------------------------------
# A1_β, A2_β
# ---------------------------------------------------------------------

def a1_beta(x, v, d: SelfForceDerivatives) -> np.ndarray:
    """直接辐射反作用项 (Eqs. A4, A5)"""
    v2 = norm2_3d(v)
    dV_dt = dv_rr_dt(x, d.Mij6, d.Mij8, d.Mijk8)
    dV_dx = dv_rr_dx(x, d.Mij5, d.Mij7, d.Mijk7)
    dVi_dt = dvi_rr_dt(x, d.Mij7, d.Sij6)
    dVi_dx = dvi_rr_dx(x, d.Mij6, d.Sij5)     # [i, a] = ∂_a V_i

    a_t = (1.0 - v2) * dV_dt + 2.0 * (v @ dV_dx) - 4.0 * np.einsum('i,j,ji->', v, v, dVi_dx)
    a_i = (-(1.0 + v2) * dV_dx + 2.0 * v * dV_dt - 4.0 * dVi_dt
           + 2.0 * v * (v @ dV_dx)
           - 4.0 * (dVi_dx - dVi_dx.T) @ v)
    return np.concatenate(([a_t], a_i))


def a2_beta(x, v, d: SelfForceDerivatives, dev: MetricDeviation, grads) -> np.ndarray:
    """度规耦合修正项 (Eqs. 62, 63)"""
    terms = coupling_terms(dev, grads, v)
    V = v_rr(x, d.Mij5, d.Mij7, d.Mijk7)
    Vi = vi_rr(x, d.Mij6, d.Sij5)
    scalar = terms.B + terms.C + terms.D
    vector = terms.Bi + terms.Ci + terms.Di
    a_t = scalar * V + vector @ Vi
    a_i = -2.0 * scalar * Vi - vector * V / 2.0
    return np.concatenate(([a_t], a_i))


def self_acceleration(x_h, v_h, x_bl, d: SelfForceDerivatives, metric: MetricProvider,
                      a: float, M: float = 1.0):
    """
    a^α_SF = -Γ² P^{αβ} (A1_β + A2_β)，返回 (谐和坐标, BL 坐标) 两种形式。
    """
    dev = metric_deviation(metric, x_bl, a, M)
    grads = metric_gradients(metric, x_bl, a, M)
    gamma = gamma_factor(dev, v_h)
    P = contravariant_projector(dev, v_h, gamma)

    a_h = -gamma**2 * P @ (a1_beta(x_h, v_h, d) + a2_beta(x_h, v_h, d, dev, grads))
    a_bl = np.concatenate(([a_h[0]], from_harmonic_acceleration(x_h, np.zeros(3), a_h[1:], a, M)))
    return a_h, a_bl


# ---------------------------------------------------------------------
# 三阶段流水线
# ---------------------------------------------------------------------

class SelfForceAssembler:
    """
    用法：
        assembler = SelfForceAssembler(params, config)
        result = assembler.compute(trajectory)
    metric 缺省为解析 KerrMetric(a, M=1)。
    """

    def __init__(self, params: EMRIParameters, config: Optional[SelfForceConfig] = None,
                 metric: Optional[MetricProvider] = None):
        self.params = params
        self.config = config if config is not None else SelfForceConfig()
        self.M = 1.0    # 内部几何单位
        self.metric = metric if metric is not None else KerrMetric(params.a, self.M)

    # --- 前置检查 ---
    def validate(self, traj: BLTrajectory):
        cfg = self.config
        if cfg.time_parameter not in TIME_PARAMETERS:
            raise ValueError(f"unknown time_parameter '{cfg.time_parameter}', expected one of {TIME_PARAMETERS}")
        if cfg.derivative_method not in DERIVATIVE_METHODS:
            raise ValueError(
                f"unknown derivative_method '{cfg.derivative_method}', expected one of {DERIVATIVE_METHODS}")
        traj.check_lengths()

        expected = "t" if cfg.time_parameter == "BL" else "mino"
        if traj.sampling != expected:
            raise ValueError(
                f"trajectory is sampled in '{traj.sampling}' but time_parameter is '{cfg.time_parameter}'")
        n = traj.n_points
        if not 0 <= cfg.compute_at < n:
            raise ValueError(f"compute_at={cfg.compute_at} is outside the series of {n} points")
        if cfg.derivative_method == "finite_difference":
            size = stencil_size(6, cfg.fd_accuracy)
            if n < size:
                raise ValueError(f"{n} points are too few for the {size}-point sixth-derivative stencil")
        elif cfg.fit_frequencies is None:
            raise ValueError("derivative_method='fourier_fit' requires fit_frequencies")
        p = self.params
        if cfg.time_parameter == "mino" and (p.E is None or p.L is None or p.C is None):
            raise ValueError("time_parameter='mino' requires the orbital constants E, L and C")

    # --- 阶段 1 ---
    def convert(self, traj: BLTrajectory) -> HarmonicTrajectory:
        return to_harmonic_trajectory(traj, self.params.a, self.M, validate=False)

    # --- 阶段 2 ---
    def moment_derivatives(self, htraj: HarmonicTrajectory) -> SelfForceDerivatives:
        cfg = self.config
        moments = selfforce_moments(htraj.x_h, htraj.v_h, htraj.a_h, self.params.q(), cfg.n_workers)

        if cfg.derivative_method == "finite_difference":
            backend = finite_difference_backend(cfg.h, cfg.compute_at, cfg.fd_accuracy)
        else:
            backend = fourier_fit_backend(cfg.h, cfg.compute_at, cfg.n_harm, cfg.fit_frequencies)

        lambda_derivs = None
        if cfg.time_parameter == "mino":
            p = self.params
            lambda_derivs = mino_lambda_derivatives(
                htraj.x_bl, htraj.v_bl, cfg.compute_at, p.a, self.M, p.E, p.L, p.C)
        return selfforce_moment_derivatives(moments, backend, lambda_derivs, cfg.n_workers)

    # --- 阶段 3 ---
    def assemble(self, htraj: HarmonicTrajectory, derivs: SelfForceDerivatives) -> SelfForceResult:
        i = self.config.compute_at
        a_h, a_bl = self_acceleration(htraj.x_h[:, i], htraj.v_h[:, i], htraj.x_bl[:, i],
                                      derivs, self.metric, self.params.a, self.M)
        return SelfForceResult(a_sf_h=a_h, a_sf_bl=a_bl, compute_at=i, derivatives=derivs)

    def compute(self, traj: BLTrajectory) -> SelfForceResult:
        if self.config.validate:
            self.validate(traj)
        htraj = self.convert(traj)
        derivs = self.moment_derivatives(htraj)
        result = self.assemble(htraj, derivs)
        logger.info("[SelfForce] compute_at={} ({}, {}): a_SF^H = {}",
                    result.compute_at, self.config.time_parameter,
                    self.config.derivative_method, result.a_sf_h)
        return result
