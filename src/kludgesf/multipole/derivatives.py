# src/kludgesf/multipole/derivatives.py
"""
多极矩的高阶时间导数 (DerivativeChain)。

思路：闭式表达式只给到 Mij2, Mijk2 (二阶) 和 Sij1 (一阶)，更高阶导数对这些序列数值求导：
- 序列按 BL 时间 t 均匀采样：直接求 d^n/dt^n；
- 序列按 Mino 时间 λ 均匀采样：先求 d^n f/dλ^n，再用链式法则 (Faà di Bruno) 与
  d^nλ/dt^n (orbits.mino_time) 组合出 d^n f/dt^n。

自力计算（只在下标 compute_at 处）需要：
    Mij5..Mij8   = d^3..d^6 (Mij2)
    Sij5, Sij6   = d^4, d^5 (Sij1)
    Mijk7, Mijk8 = d^5, d^6 (Mijk2)
波形计算（每个采样点）需要：
    Sij2 = d(Sij1), Mijk3 = d(Mijk2), Sijk3 = d²(Sijk1), Mijkl4 = d²(Mijkl2)

数值求导的后端可以是有限差分 (utils.math_utils) 或 Fourier 拟合 (utils.fourier_fit)。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np
from loguru import logger

from ..orbits.mino_time import geodesic_lambda_time_derivatives
from ..utils.fourier_fit import fourier_fit
from ..utils.math_utils import compute_derivative, finite_difference_series
from ..utils.parallel import parallel_map
from ..utils.symmetrize import (
    PAIR_INDICES,
    TRIPLE_INDICES,
    QUAD_INDICES,
    symmetrize_tensor,
)
from .moments import SelfForceMoments, WaveformMoments


# ---------------------------------------------------------------------
# Faà di Bruno：f(λ(t)) 的 1-6 阶导数
# f[k-1] = d^k f/dλ^k,  l[k-1] = d^k λ/dt^k
# ---------------------------------------------------------------------

def d1f_dt(f, l):
    return f[0] * l[0]


def d2f_dt(f, l):
    return f[0] * l[1] + f[1] * l[0]**2


def d3f_dt(f, l):
    return f[0] * l[2] + 3.0 * f[1] * l[0] * l[1] + f[2] * l[0]**3


def d4f_dt(f, l):
    return (f[0] * l[3]
            + f[1] * (4.0 * l[0] * l[2] + 3.0 * l[1]**2)
            + 6.0 * f[2] * l[0]**2 * l[1]
            + f[3] * l[0]**4)


def d5f_dt(f, l):
    return (f[0] * l[4]
            + f[1] * (5.0 * l[0] * l[3] + 10.0 * l[1] * l[2])
            + f[2] * (10.0 * l[0]**2 * l[2] + 15.0 * l[0] * l[1]**2)
            + 10.0 * f[3] * l[0]**3 * l[1]
            + f[4] * l[0]**5)


def d6f_dt(f, l):
    return (f[0] * l[5]
            + f[1] * (6.0 * l[0] * l[4] + 15.0 * l[1] * l[3] + 10.0 * l[2]**2)
            + f[2] * (15.0 * l[0]**2 * l[3] + 60.0 * l[0] * l[1] * l[2] + 15.0 * l[1]**3)
            + f[3] * (20.0 * l[0]**3 * l[2] + 45.0 * l[0]**2 * l[1]**2)
            + 15.0 * f[4] * l[0]**4 * l[1]
            + f[5] * l[0]**6)


CHAIN_RULE = {1: d1f_dt, 2: d2f_dt, 3: d3f_dt, 4: d4f_dt, 5: d5f_dt, 6: d6f_dt}


def chain_rule(order: int, f: Sequence, l: Sequence):
    """d^order f / dt^order；需要 f, l 至少各有 order 个元素。"""
    return CHAIN_RULE[order](f, l)


def _to_time(order: int, f: Sequence, l: Optional[Sequence]):
    # l 为 None 表示序列本身就是按 t 采样
    if l is None:
        return f[order - 1]
    return chain_rule(order, f, l)


# ---------------------------------------------------------------------
# 数值求导后端：series -> [d^1, ..., d^max_order]（对采样参数，在 compute_at 处）
# ---------------------------------------------------------------------

Backend = Callable[[np.ndarray, int], list]


def finite_difference_backend(h: float, compute_at: int, accuracy: int = 6) -> Backend:
    def backend(series, max_order):
        n = len(series)
        return [compute_derivative(k, compute_at, series, h, n, accuracy)
                for k in range(1, max_order + 1)]
    return backend


def fourier_fit_backend(h: float, compute_at: int, n_harm: int, fundamental) -> Backend:
    """fundamental: 采样参数下的基频 (Ω_r, Ω_θ, Ω_ϕ)，>= 1e9 的分量会被忽略。"""
    def backend(series, max_order):
        grid = h * np.arange(len(series))
        fit = fourier_fit(grid, series, n_harm, fundamental)
        t0 = grid[compute_at]
        return [float(fit.derivative(t0, k)[0]) for k in range(1, max_order + 1)]
    return backend


# ---------------------------------------------------------------------
# Mino 时间：d^nλ/dt^n
# ---------------------------------------------------------------------

def mino_lambda_derivatives(x_bl, v_bl, compute_at: int,
                            a: float, M: float, E: float, L: float, C: float) -> list:
    """
    在 compute_at 处返回 [dλ/dt, ..., d⁶λ/dt⁶]。

    只取采样点上的 (x, dx/dt)；更高阶的轨道导数由测地线方程解析给出，
    不对采样序列做差分。
    """
    return geodesic_lambda_time_derivatives(x_bl[:, compute_at], v_bl[:, compute_at],
                                            a, M, E, L, C, 6)


# ---------------------------------------------------------------------
# 自力计算用的导数
# ---------------------------------------------------------------------

@dataclass
class SelfForceDerivatives:
    Mij5: np.ndarray
    Mij6: np.ndarray
    Mij7: np.ndarray
    Mij8: np.ndarray
    Mijk7: np.ndarray
    Mijk8: np.ndarray
    Sij5: np.ndarray
    Sij6: np.ndarray


def selfforce_moment_derivatives(moments: SelfForceMoments, backend: Backend,
                                 lambda_derivs: Optional[Sequence] = None,
                                 n_workers: int = 1) -> SelfForceDerivatives:
    """
    lambda_derivs 为 None：序列按 t 采样；
    否则为 [dλ/dt, ..., d⁶λ/dt⁶]，序列按 λ 采样。
    """
    out = SelfForceDerivatives(
        Mij5=np.zeros((3, 3)), Mij6=np.zeros((3, 3)),
        Mij7=np.zeros((3, 3)), Mij8=np.zeros((3, 3)),
        Mijk7=np.zeros((3, 3, 3)), Mijk8=np.zeros((3, 3, 3)),
        Sij5=np.zeros((3, 3)), Sij6=np.zeros((3, 3)),
    )

    def fill(idx):
        if len(idx) == 2:
            f = backend(moments.Mij2[idx], 6)
            out.Mij5[idx] = _to_time(3, f, lambda_derivs)
            out.Mij6[idx] = _to_time(4, f, lambda_derivs)
            out.Mij7[idx] = _to_time(5, f, lambda_derivs)
            out.Mij8[idx] = _to_time(6, f, lambda_derivs)

            f = backend(moments.Sij1[idx], 5)
            out.Sij5[idx] = _to_time(4, f, lambda_derivs)
            out.Sij6[idx] = _to_time(5, f, lambda_derivs)
        else:
            f = backend(moments.Mijk2[idx], 6)
            out.Mijk7[idx] = _to_time(5, f, lambda_derivs)
            out.Mijk8[idx] = _to_time(6, f, lambda_derivs)

    parallel_map(fill, PAIR_INDICES + TRIPLE_INDICES, n_workers)
    for name in ("Mij5", "Mij6", "Mij7", "Mij8", "Sij5", "Sij6"):
        symmetrize_tensor(getattr(out, name), 2)
    symmetrize_tensor(out.Mijk7, 3)
    symmetrize_tensor(out.Mijk8, 3)
    logger.debug("[Derivs] self-force moment derivatives ({})",
                 "t" if lambda_derivs is None else "mino")
    return out


# ---------------------------------------------------------------------
# 波形计算用的导数（每个采样点）
# ---------------------------------------------------------------------

@dataclass
class WaveformDerivatives:
    Mij2: np.ndarray
    Mijk3: np.ndarray
    Mijkl4: np.ndarray
    Sij2: np.ndarray
    Sijk3: np.ndarray


def waveform_moment_derivatives(moments: WaveformMoments, h: float,
                                lambda_derivs: Optional[Sequence] = None,
                                accuracy: int = 6, n_workers: int = 1) -> WaveformDerivatives:
    """
    lambda_derivs 为 None：序列按 t 采样；
    否则为 [dλ/dt, d²λ/dt²]，每一项是长度 N 的数组（逐点链式法则）。
    """
    n = moments.Mij2.shape[-1]
    Sij2 = np.zeros((3, 3, n))
    Mijk3 = np.zeros((3, 3, 3, n))
    Sijk3 = np.zeros((3, 3, 3, n))
    Mijkl4 = np.zeros((3, 3, 3, 3, n))

    def series_derivs(series, max_order):
        return [finite_difference_series(series, h, k, accuracy) for k in range(1, max_order + 1)]

    def fill(idx):
        if len(idx) == 2:
            Sij2[idx] = _to_time(1, series_derivs(moments.Sij1[idx], 1), lambda_derivs)
        elif len(idx) == 3:
            Mijk3[idx] = _to_time(1, series_derivs(moments.Mijk2[idx], 1), lambda_derivs)
            Sijk3[idx] = _to_time(2, series_derivs(moments.Sijk1[idx], 2), lambda_derivs)
        else:
            Mijkl4[idx] = _to_time(2, series_derivs(moments.Mijkl2[idx], 2), lambda_derivs)

    parallel_map(fill, PAIR_INDICES + TRIPLE_INDICES + QUAD_INDICES, n_workers)
    symmetrize_tensor(Sij2, 2)
    symmetrize_tensor(Mijk3, 3)
    symmetrize_tensor(Sijk3, 3)
    symmetrize_tensor(Mijkl4, 4)
    logger.debug("[Derivs] waveform moment derivatives over {} samples", n)
    return WaveformDerivatives(Mij2=moments.Mij2, Mijk3=Mijk3, Mijkl4=Mijkl4,
                               Sij2=Sij2, Sijk3=Sijk3)
