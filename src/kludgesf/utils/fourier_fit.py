# src/kludgesf/utils/fourier_fit.py
"""
Fourier 级数最小二乘拟合，用作高阶导数的另一种估计方法
(arXiv:1109.0572v2 Eqs. 98-99；arXiv:astro-ph/0308479v3)。

拟合形式：
    f(t) = c_0 + Σ_j [ A_j cos(Ω_j t) + B_j sin(Ω_j t) ]
其中拟合频率 Ω_j 由基频 (Ω_r, Ω_θ, Ω_ϕ) 的整数组合构成：
    k = 0..n_harm, m = -k..n_harm, l = -(k+m)..n_harm，去掉全零组合并取绝对值。

注意：
- 基频 >= 1e9 视为“未定义”（例如赤道轨道的极向频率），只用剩下的基频拟合；
- 对轨道函数拟合后求 6 阶导数，相对误差大约 1e-5 量级，但这是过拟合的结果，
  功率谱并不一定对应真实的主导模式，只适合作为求导的黑盒。
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.linalg import lstsq

UNDEFINED_FREQUENCY = 1e9


def fitting_frequencies_1(n_harm: int, omega_1: float) -> np.ndarray:
    return np.array([i_r * omega_1 for i_r in range(1, n_harm + 1)], dtype=float)


def fitting_frequencies_2(n_harm: int, omega_1: float, omega_2: float) -> np.ndarray:
    freqs = []
    for i_r in range(0, n_harm + 1):
        for i_th in range(-i_r, n_harm + 1):
            if i_r == 0 and i_th == 0:
                continue
            freqs.append(abs(i_r * omega_1 + i_th * omega_2))
    return np.array(freqs, dtype=float)


def fitting_frequencies_3(n_harm: int, omega_1: float, omega_2: float, omega_3: float) -> np.ndarray:
    freqs = []
    for i_r in range(0, n_harm + 1):
        for i_th in range(-i_r, n_harm + 1):
            for i_ph in range(-(i_r + i_th), n_harm + 1):
                if i_r == 0 and i_th == 0 and i_ph == 0:
                    continue
                freqs.append(abs(i_r * omega_1 + i_th * omega_2 + i_ph * omega_3))
    return np.array(freqs, dtype=float)


def fitting_frequencies(n_harm: int, fundamental) -> np.ndarray:
    """按已定义的基频个数 (1, 2, 3) 选择构造方式。"""
    fundamental = np.asarray(fundamental, dtype=float)
    freqs = fundamental[fundamental < UNDEFINED_FREQUENCY]
    if len(freqs) == 1:
        return fitting_frequencies_1(n_harm, *freqs)
    if len(freqs) == 2:
        return fitting_frequencies_2(n_harm, *freqs)
    if len(freqs) == 3:
        return fitting_frequencies_3(n_harm, *freqs)
    raise ValueError(f"need 1-3 defined fundamental frequencies, got {len(freqs)}")


def design_matrix(tdata, omegas) -> np.ndarray:
    """每一行是 [1, cos(Ω_1 t), ..., cos(Ω_n t), sin(Ω_1 t), ..., sin(Ω_n t)]。"""
    tdata = np.asarray(tdata, dtype=float)
    phase = np.outer(tdata, omegas)
    return np.hstack([np.ones((len(tdata), 1)), np.cos(phase), np.sin(phase)])


@dataclass
class FourierFit:
    """拟合结果：频率、系数 (c_0, A_j, B_j) 与残差平方和。"""
    omegas: np.ndarray
    params: np.ndarray
    chisq: float

    @property
    def n_freqs(self) -> int:
        return len(self.omegas)

    def derivative(self, tdata, order: int) -> np.ndarray:
        """
        拟合级数的 order 阶导数：
            d^N/dt^N cos(Ωt) = Ω^N cos(Ωt + Nπ/2)，sin 同理；常数项只在 N=0 时保留。
        """
        tdata = np.atleast_1d(np.asarray(tdata, dtype=float))
        n = self.n_freqs
        A = self.params[1:n + 1]
        B = self.params[n + 1:]
        phase = np.outer(tdata, self.omegas) + order * np.pi / 2.0
        scale = self.omegas**order
        f = np.cos(phase) @ (scale * A) + np.sin(phase) @ (scale * B)
        if order == 0:
            f = f + self.params[0]
        return f


def fourier_fit(tdata, ydata, n_harm: int, fundamental) -> FourierFit:
    """线性最小二乘拟合 (scipy.linalg.lstsq)。"""
    omegas = fitting_frequencies(n_harm, fundamental)
    X = design_matrix(tdata, omegas)
    y = np.asarray(ydata, dtype=float)
    params, _, _, _ = lstsq(X, y)
    resid = y - X @ params
    return FourierFit(omegas=omegas, params=params, chisq=float(resid @ resid))
