# src/kludgesf/multipole/moments.py
"""
质量 / 流多极矩的闭式表达式（谐和坐标，M = 1，小天体质量 m = q）。

参考 arXiv:1109.0572v2：
- M_ij, M_ijk          : Eq. 48
- d²M_ij/dt²           : Eq. 7.17
- d²M_ijk/dt²          : Eq. 7.19
- d²M_ijkl/dt²         : Eq. 85（展开式很长，按项逐一照抄，不做化简）
- S_ij, dS_ij/dt       : Eq. 49
- dS_ijk/dt            : Eq. 86

所有函数都是纯函数；x, v, acc 的形状为 (3,) 或 (3, N)，返回标量或 (N,)。
公共因子 η(q) = q / (1+q)²，q = 0 时所有矩恰好为 0（检验粒子极限）。

与其他模块的关系：
- multipole.derivatives: 对这里填充的 Mij2, Mijk2, Sij1 (以及波形用的 Mijkl2, Sijk1) 序列求高阶导数；
- waveforms.kludge_waveform: 使用 waveform_moments 的结果。
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from loguru import logger

from ..utils.parallel import parallel_map
from ..utils.symmetrize import (
    PAIR_INDICES,
    TRIPLE_INDICES,
    QUAD_INDICES,
    symmetrize_two_index_tensor,
    symmetrize_three_index_tensor,
    symmetrize_four_index_tensor,
)
from ..utils.tensor_algebra import (
    LEVI_CIVITA,
    dot3d,
    kronecker_delta as d,
    stf2,
    stf2_pair,
    stf3,
)


def eta(q: float) -> float:
    """质量比参数 η = q / (1+q)²"""
    return q / ((1.0 + q)**2)


# ---------------------------------------------------------------------
# 质量矩
# ---------------------------------------------------------------------

def m_ij(x, q: float, i: int, j: int):
    """质量四极矩 (Eq. 48)"""
    return eta(q) * (1.0 + q) * stf2(x, i, j)


def ddot_m_ij(x, v, acc, q: float, i: int, j: int):
    """Eq. 7.17"""
    return eta(q) * (1.0 + q) * (
        (-2.0 * d(i, j) / 3.0) * (dot3d(x, acc) + dot3d(v, v))
        + x[j] * acc[i] + 2.0 * v[i] * v[j] + x[i] * acc[j]
    )


def m_ijk(x, q: float, i: int, j: int, k: int):
    """质量八极矩 (Eq. 48)"""
    return eta(q) * (1.0 - q) * stf3(x, i, j, k)


def ddot_m_ijk(x, v, acc, q: float, i: int, j: int, k: int):
    """Eq. 7.19"""
    xv = dot3d(x, v)
    xa_vv = dot3d(x, acc) + dot3d(v, v)
    r2 = dot3d(x, x)
    return eta(q) * (1.0 - q) * (
        (-4.0 / 5.0) * xv * (d(i, j) * v[k] + d(j, k) * v[i] + d(k, i) * v[j])
        - (2.0 / 5.0) * xa_vv * (d(i, j) * x[k] + d(j, k) * x[i] + d(k, i) * x[j])
        - (1.0 / 5.0) * r2 * (d(i, j) * acc[k] + d(j, k) * acc[i] + d(k, i) * acc[j])
        + 2.0 * v[k] * (x[j] * v[i] + x[i] * v[j])
        + x[k] * (x[j] * acc[i] + 2.0 * v[i] * v[j] + x[i] * acc[j])
        + x[i] * x[j] * acc[k]
    )


def ddot_m_ijkl(x, v, acc, q: float, i: int, j: int, k: int, l: int):
    """质量十六极矩的二阶导数 (Eq. 85)，逐项照抄。"""
    xv = dot3d(x, v)
    xa_vv = dot3d(v, v) + dot3d(x, acc)
    r2 = dot3d(x, x)

    def pair(p, s):
        return 2.0 * v[p] * v[s] + x[s] * acc[p] + x[p] * acc[s]

    return (1.0 + q) * eta(q) * (
        2.0 * (x[j] * v[i] + x[i] * v[j]) * (x[l] * v[k] + x[k] * v[l])
        - (4.0 * xv * (
            x[k] * d(j, l) * v[i] + x[j] * d(k, l) * v[i]
            + x[k] * d(i, l) * v[j] + x[i] * d(k, l) * v[j]
            + x[j] * d(i, l) * v[k] + x[i] * d(j, l) * v[k]
            + x[l] * (d(j, k) * v[i] + d(i, k) * v[j] + d(i, j) * v[k])
            + (x[k] * d(i, j) + x[j] * d(i, k) + x[i] * d(j, k)) * v[l]
        )) / 7.0
        - (2.0 * (
            x[i] * x[l] * d(j, k)
            + x[k] * (x[l] * d(i, j) + x[j] * d(i, l) + x[i] * d(j, l))
            + x[j] * (x[l] * d(i, k) + x[i] * d(k, l))
        ) * xa_vv) / 7.0
        + ((d(i, l) * d(j, k) + d(i, k) * d(j, l) + d(i, j) * d(k, l))
           * (8.0 * xv**2 + 4.0 * r2 * xa_vv)) / 35.0
        + x[k] * x[l] * pair(i, j)
        + x[i] * x[j] * pair(k, l)
        - (r2 * (
            d(k, l) * pair(i, j) + d(j, l) * pair(i, k) + d(i, l) * pair(j, k)
            + d(j, k) * pair(i, l) + d(i, k) * pair(j, l) + d(i, j) * pair(k, l)
        )) / 7.0
    )


# ---------------------------------------------------------------------
# 流矩
# ---------------------------------------------------------------------

def s_ij(x, v, q: float, i: int, j: int):
    """流四极矩 S_ij = η(1-q) Σ_kl STF(ε_kl, x)_ij x_k v_l (Eq. 49)"""
    s = 0.0
    for k in range(3):
        for l in range(3):
            s = s + stf2_pair(LEVI_CIVITA[k, l], x, i, j) * x[k] * v[l]
    return eta(q) * (1.0 - q) * s


def dot_s_ij(x, v, acc, q: float, i: int, j: int):
    s = 0.0
    for k in range(3):
        for l in range(3):
            e = LEVI_CIVITA[k, l]
            s = s + (
                -2.0 * d(i, j) * (v[l] * (x[k] * dot3d(e, v) + v[k] * dot3d(e, x))
                                  + x[k] * acc[l] * dot3d(e, x))
                + 3.0 * v[l] * (e[i] * (x[k] * v[j] + x[j] * v[k])
                                + e[j] * (x[k] * v[i] + x[i] * v[k]))
                + 3.0 * x[k] * acc[l] * (e[i] * x[j] + e[j] * x[i])
            )
    return eta(q) * (1.0 - q) * s / 6.0


def _sijk_a(e, x, i, j, k):
    ex = dot3d(x, e)
    r2 = dot3d(x, x)
    return (d(j, k) * (-2.0 * x[i] * ex - r2 * e[i])
            + d(k, i) * (-2.0 * x[i] * ex - r2 * e[j])
            + d(i, j) * (-2.0 * x[i] * ex - r2 * e[k])
            + 5.0 * (x[i] * x[k] * e[j] + x[j] * (x[k] * e[i] + x[i] * e[k])))


def _sijk_b(e, x, v, i, j, k):
    xv = dot3d(x, v)
    ev = dot3d(e, v)
    ex = dot3d(x, e)
    return (-2.0 * d(j, k) * (e[i] * xv + x[i] * ev + ex * v[i])
            - 2.0 * d(k, i) * (e[j] * xv + x[i] * ev + ex * v[i])
            - 2.0 * d(i, j) * (e[k] * xv + x[i] * ev + ex * v[i])
            + 5.0 * (e[k] * (x[j] * v[i] + x[i] * v[j])
                     + x[k] * (e[j] * v[i] + e[i] * v[j])
                     + (x[j] * e[i] + x[i] * e[j]) * v[k]))


def dot_s_ijk(x, v, acc, q: float, i: int, j: int, k: int):
    """
    流八极矩的一阶导数 (Eq. 86)。
    求和只取 p, q ∈ {x, y}，迹项一律写成 x_i，与原展开式保持一致。
    """
    s = 0.0
    for p in range(2):
        for r in range(2):
            e = LEVI_CIVITA[p, r]
            a_term = _sijk_a(e, x, i, j, k)
            s = s + (a_term * v[p] * v[r]
                     + x[p] * v[r] * _sijk_b(e, x, v, i, j, k)
                     + x[p] * acc[r] * a_term)
    return (1.0 + q) * eta(q) * s / 15.0


# ---------------------------------------------------------------------
# 在整条轨道上填充
# ---------------------------------------------------------------------

@dataclass
class SelfForceMoments:
    """自力计算用的矩序列，形状 (3, 3, N) / (3, 3, 3, N)，已对称化。"""
    Mij2: np.ndarray
    Mijk2: np.ndarray
    Sij1: np.ndarray


@dataclass
class WaveformMoments:
    Mij2: np.ndarray
    Mijk2: np.ndarray
    Mijkl2: np.ndarray
    Sij1: np.ndarray
    Sijk1: np.ndarray


def selfforce_moments(x, v, acc, q: float, n_workers: int = 1) -> SelfForceMoments:
    """x, v, acc: 谐和坐标下的 (3, N) 数组。"""
    n = x.shape[1]
    Mij2 = np.zeros((3, 3, n))
    Sij1 = np.zeros((3, 3, n))
    Mijk2 = np.zeros((3, 3, 3, n))

    def fill(idx):
        if len(idx) == 2:
            i, j = idx
            Mij2[i, j] = ddot_m_ij(x, v, acc, q, i, j)
            Sij1[i, j] = dot_s_ij(x, v, acc, q, i, j)
        else:
            i, j, k = idx
            Mijk2[i, j, k] = ddot_m_ijk(x, v, acc, q, i, j, k)

    parallel_map(fill, PAIR_INDICES + TRIPLE_INDICES, n_workers)
    symmetrize_two_index_tensor(Mij2)
    symmetrize_two_index_tensor(Sij1)
    symmetrize_three_index_tensor(Mijk2)
    logger.debug("[Moments] filled self-force moments over {} samples", n)
    return SelfForceMoments(Mij2=Mij2, Mijk2=Mijk2, Sij1=Sij1)


def waveform_moments(x, v, acc, q: float, n_workers: int = 1) -> WaveformMoments:
    n = x.shape[1]
    Mij2 = np.zeros((3, 3, n))
    Sij1 = np.zeros((3, 3, n))
    Mijk2 = np.zeros((3, 3, 3, n))
    Sijk1 = np.zeros((3, 3, 3, n))
    Mijkl2 = np.zeros((3, 3, 3, 3, n))

    def fill(idx):
        if len(idx) == 2:
            i, j = idx
            Mij2[i, j] = ddot_m_ij(x, v, acc, q, i, j)
            Sij1[i, j] = dot_s_ij(x, v, acc, q, i, j)
        elif len(idx) == 3:
            i, j, k = idx
            Mijk2[i, j, k] = ddot_m_ijk(x, v, acc, q, i, j, k)
            Sijk1[i, j, k] = dot_s_ijk(x, v, acc, q, i, j, k)
        else:
            i, j, k, l = idx
            Mijkl2[i, j, k, l] = ddot_m_ijkl(x, v, acc, q, i, j, k, l)

    parallel_map(fill, PAIR_INDICES + TRIPLE_INDICES + QUAD_INDICES, n_workers)
    symmetrize_two_index_tensor(Mij2)
    symmetrize_two_index_tensor(Sij1)
    symmetrize_three_index_tensor(Mijk2)
    symmetrize_three_index_tensor(Sijk1)
    symmetrize_four_index_tensor(Mijkl2)
    logger.debug("[Moments] filled waveform moments over {} samples", n)
    return WaveformMoments(Mij2=Mij2, Mijk2=Mijk2, Mijkl2=Mijkl2, Sij1=Sij1, Sijk1=Sijk1)
