# src/kludgesf/selfforce/metric_coupling.py
"""
谐和坐标度规相对 Minkowski 的偏离及其空间导数 (MetricCouplingTerms)，
以及与轨道速度耦合的 B/C/D 项 (arXiv:1109.0572v2 Eqs. 54-56, A6-A14)。

    K    = g^H_tt + 1,   K_i = g^H_ti,   K_ij = g^H_ij - δ_ij
    Q    = g_H^tt + 1,   Q^i = g_H^ti,   Q^ij = g_H^ij - δ^ij

空间导数 ∂_k K, ∂_k K_i, ∂_k K_ij 用度规相容条件
    ∂_n g_αβ = g_μα Γ^μ_βn + g_μβ Γ^μ_αn
把 BL 度规的导数写成 Christoffel 符号，再用 ∂x_BL/∂x_H 和 Hessian 变到谐和坐标。

与其他模块的关系：
- geometry.kerr_metric.MetricProvider: 提供 g_μν, g^μν, Γ^α_μν；
- geometry.harmonic_coords: Jacobian、Hessian、谐和坐标度规；
- selfforce.assembler: 用 B/C/D 项组装 A2_β。

注意：
- ∂_k K 与 ∂_k K_i 采用修正后的形式（∂K 有因子 2、Hessian 项不带额外的 2、
  K_i 的 Christoffel 项不除以 2），这与论文 Eqs. A12-A14 的原始写法不同，
  修正后的形式与谐和度规的有限差分一致。
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from ..geometry.harmonic_coords import (
    bl_hessian,
    bl_jacobian,
    harmonic_inverse_metric,
    harmonic_metric,
)
from ..utils.tensor_algebra import DELTA_3, ETA_4


@dataclass
class MetricDeviation:
    """谐和坐标下 g_μν - η_μν 与 g^μν - η^μν 的各个分块。"""
    K: float
    Ki: np.ndarray
    Kij: np.ndarray
    Kmunu: np.ndarray
    Q: float
    Qi: np.ndarray
    Qij: np.ndarray
    Qmunu: np.ndarray


@dataclass
class MetricGradients:
    """dK[k] = ∂_k K, dKi[k, i] = ∂_k K_i, dKij[k, i, j] = ∂_k K_ij"""
    dK: np.ndarray
    dKi: np.ndarray
    dKij: np.ndarray


@dataclass
class CouplingTerms:
    B: float
    Bi: np.ndarray
    C: float
    Ci: np.ndarray
    D: float
    Di: np.ndarray


def metric_deviation(metric, x_bl, a: float, M: float = 1.0) -> MetricDeviation:
    g_h = harmonic_metric(metric, x_bl, a, M)
    g_h_inv = harmonic_inverse_metric(metric, x_bl, a, M)
    k_munu = g_h - ETA_4
    q_munu = g_h_inv - ETA_4
    return MetricDeviation(
        K=float(k_munu[0, 0]), Ki=k_munu[0, 1:].copy(), Kij=k_munu[1:, 1:].copy(), Kmunu=k_munu,
        Q=float(q_munu[0, 0]), Qi=q_munu[0, 1:].copy(), Qij=q_munu[1:, 1:].copy(), Qmunu=q_munu,
    )


def bl_metric_spatial_derivatives(metric, x_bl) -> np.ndarray:
    """dg[α, β, n] = ∂_n g_αβ (n 为 BL 空间坐标 r, θ, ϕ)，由 Christoffel 符号给出。"""
    g = metric.metric(x_bl)
    gamma = metric.christoffel(x_bl)[:, :, 1:]
    return np.einsum('ma,mbn->abn', g, gamma) + np.einsum('mb,man->abn', g, gamma)


def metric_gradients(metric, x_bl, a: float, M: float = 1.0) -> MetricGradients:
    """
    ∂_k K    = ∂_n g_tt J⁻¹[n, k]                                               (Eq. A12)
    ∂_k K_i  = ∂_n g_tm J⁻¹[n, k] J⁻¹[m, i] + g_tm Hess[m, k, i]                 (Eq. A13)
    ∂_k K_ij = ∂_n g_lm J⁻¹[n, k] J⁻¹[l, i] J⁻¹[m, j]
               + g_lm (Hess[l, k, i] J⁻¹[m, j] + Hess[l, k, j] J⁻¹[m, i])       (Eq. A14)
    其中 J⁻¹ = ∂x_BL/∂x_H，Hess[m, i, k] = ∂²x_BL^m/∂x_H^i ∂x_H^k。
    """
    g = metric.metric(x_bl)
    dg = bl_metric_spatial_derivatives(metric, x_bl)
    j_inv = bl_jacobian(x_bl, a, M)
    hess = bl_hessian(x_bl, a, M)

    g_ts = g[0, 1:]
    g_ss = g[1:, 1:]
    dg_tt = dg[0, 0]
    dg_ts = dg[0, 1:]
    dg_ss = dg[1:, 1:]

    dK = dg_tt @ j_inv
    dKi = (np.einsum('mn,nk,mi->ki', dg_ts, j_inv, j_inv)
           + np.einsum('m,mki->ki', g_ts, hess))
    dKij = (np.einsum('lmn,nk,li,mj->kij', dg_ss, j_inv, j_inv, j_inv)
            + np.einsum('lm,lki,mj->kij', g_ss, hess, j_inv)
            + np.einsum('lm,lkj,mi->kij', g_ss, hess, j_inv))
    return MetricGradients(dK=dK, dKi=dKi, dKij=dKij)


def coupling_terms(dev: MetricDeviation, grads: MetricGradients, v) -> CouplingTerms:
    """v: 谐和坐标速度 (3,)"""
    dK, dKi, dKij = grads.dK, grads.dKi, grads.dKij
    Q, Qi = dev.Q, dev.Qi
    dq = DELTA_3 + dev.Qij
    curl = dKi - dKi.T      # curl[j, k] = ∂_j K_k - ∂_k K_j
    # sym[j, k, l] = ∂_j K_kl + ∂_k K_jl - ∂_l K_jk
    sym = dKij + np.einsum('kjl->jkl', dKij) - np.einsum('ljk->jkl', dKij)

    B = float(Qi @ dK)                                               # Eq. A6
    Bi = -2.0 * dq @ dK                                              # Eq. A9
    C = float(2.0 * (1.0 - Q) * (v @ dK)                             # Eq. A7
              + 2.0 * np.einsum('i,j,ij->', Qi, v, curl))
    Ci = (4.0 * Qi * (v @ dK)                                        # Eq. A10
          + 4.0 * np.einsum('ik,j,jk->i', dq, v, curl))
    D = float(2.0 * (1.0 - Q) * np.einsum('i,j,ij->', v, v, dKi)     # Eq. A8
              - np.einsum('i,j,k,jki->', Qi, v, v, sym))
    Di = (4.0 * Qi * np.einsum('j,k,jk->', v, v, dKi)                # Eq. A11
          + 2.0 * np.einsum('il,j,k,jkl->i', dq, v, v, sym))
    return CouplingTerms(B=B, Bi=Bi, C=C, Ci=Ci, D=D, Di=Di)
