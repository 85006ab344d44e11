# src/kludgesf/geometry/kerr_metric.py
"""
Kerr 度规求值器 (Boyer-Lindquist 坐标, 指标顺序 t, r, θ, ϕ)。

- MetricProvider: 自力计算依赖的接口（协变度规、逆变度规、Christoffel 符号及其分量访问）；
- KerrMetric: 解析 Kerr 实现，Christoffel 符号由度规的解析偏导数得到。

与其他模块的关系：
- geometry.harmonic_coords: 把 BL 度规变换到谐和坐标 (g^H, g_H^{-1})；
- selfforce.metric_coupling: 用 Christoffel 符号构造 ∂_k g_{αβ}，再得到 ∂K, ∂K_i, ∂K_ij；
- 测试里可以用任意实现同一接口的替身（例如 Minkowski 度规）。

注意：
- 只在单个 BL 位置 x_bl = (r, θ, ϕ) 上求值；
- θ = 0, π 与视界 Δ = 0 处是坐标奇点，结果按 IEEE-754 传播 inf/NaN，不做截断。
"""

from __future__ import annotations

from typing import Protocol

import numpy as np


class MetricProvider(Protocol):
    """度规求值接口。x_bl 为 BL 空间坐标 (r, θ, ϕ)。"""

    def metric(self, x_bl) -> np.ndarray:
        """g_{μν}, 形状 (4, 4)"""
        ...

    def inverse_metric(self, x_bl) -> np.ndarray:
        """g^{μν}, 形状 (4, 4)"""
        ...

    def christoffel(self, x_bl) -> np.ndarray:
        """Γ^α_{μν}, 形状 (4, 4, 4)"""
        ...

    def metric_component(self, mu: int, nu: int, x_bl) -> float:
        return float(self.metric(x_bl)[mu, nu])

    def inverse_metric_component(self, mu: int, nu: int, x_bl) -> float:
        return float(self.inverse_metric(x_bl)[mu, nu])

    def christoffel_component(self, alpha: int, mu: int, nu: int, x_bl) -> float:
        return float(self.christoffel(x_bl)[alpha, mu, nu])


def christoffel_from_derivatives(g_inv: np.ndarray, dg: np.ndarray) -> np.ndarray:
    """
    Γ^α_{μν} = ½ g^{αβ} (∂_μ g_{βν} + ∂_ν g_{βμ} - ∂_β g_{μν})
    dg[β, ν, μ] = ∂_μ g_{βν}
    """
    lowered = (np.einsum('bnm->bmn', dg)
               + dg
               - np.einsum('mnb->bmn', dg))
    return 0.5 * np.einsum('ab,bmn->amn', g_inv, lowered)


class KerrMetric(MetricProvider):
    """
    解析 Kerr 度规。
        Σ = r² + a² cos²θ,  Δ = r² - 2Mr + a²
    """

    def __init__(self, a: float, M: float = 1.0):
        self.a = a
        self.M = M

    def _sigma_delta(self, r, th):
        a = self.a
        sigma = r * r + a * a * np.cos(th)**2
        delta = r * r - 2.0 * self.M * r + a * a
        return sigma, delta

    def metric(self, x_bl) -> np.ndarray:
        r, th = x_bl[0], x_bl[1]
        a, M = self.a, self.M
        sigma, delta = self._sigma_delta(r, th)
        sin2 = np.sin(th)**2

        g = np.zeros((4, 4))
        g[0, 0] = -(1.0 - 2.0 * M * r / sigma)
        g[0, 3] = g[3, 0] = -2.0 * M * a * r * sin2 / sigma
        g[1, 1] = sigma / delta
        g[2, 2] = sigma
        g[3, 3] = (r * r + a * a + 2.0 * M * r * a * a * sin2 / sigma) * sin2
        return g

    def inverse_metric(self, x_bl) -> np.ndarray:
        r, th = x_bl[0], x_bl[1]
        a, M = self.a, self.M
        sigma, delta = self._sigma_delta(r, th)
        sin2 = np.sin(th)**2
        big_a = (r * r + a * a)**2 - a * a * delta * sin2

        g_inv = np.zeros((4, 4))
        g_inv[0, 0] = -big_a / (sigma * delta)
        g_inv[0, 3] = g_inv[3, 0] = -2.0 * M * a * r / (sigma * delta)
        g_inv[1, 1] = delta / sigma
        g_inv[2, 2] = 1.0 / sigma
        g_inv[3, 3] = (delta - a * a * sin2) / (sigma * delta * sin2)
        return g_inv

    def metric_derivatives(self, x_bl) -> np.ndarray:
        """dg[α, β, μ] = ∂_μ g_{αβ}（只有 μ = r, θ 非零）"""
        r, th = x_bl[0], x_bl[1]
        a, M = self.a, self.M
        sigma, delta = self._sigma_delta(r, th)
        s, c = np.sin(th), np.cos(th)
        s2 = s * s

        sig_r = 2.0 * r
        sig_th = -2.0 * a * a * s * c
        del_r = 2.0 * r - 2.0 * M
        sig_sq = sigma * sigma

        dg = np.zeros((4, 4, 4))
        # g_tt
        dg[0, 0, 1] = 2.0 * M * (sigma - 2.0 * r * r) / sig_sq
        dg[0, 0, 2] = -2.0 * M * r * sig_th / sig_sq
        # g_tϕ
        dg[0, 3, 1] = -2.0 * M * a * s2 * (sigma - 2.0 * r * r) / sig_sq
        dg[0, 3, 2] = -2.0 * M * a * r * (2.0 * s * c * sigma - s2 * sig_th) / sig_sq
        dg[3, 0, 1] = dg[0, 3, 1]
        dg[3, 0, 2] = dg[0, 3, 2]
        # g_rr
        dg[1, 1, 1] = (sig_r * delta - sigma * del_r) / (delta * delta)
        dg[1, 1, 2] = sig_th / delta
        # g_θθ
        dg[2, 2, 1] = sig_r
        dg[2, 2, 2] = sig_th
        # g_ϕϕ
        dg[3, 3, 1] = 2.0 * r * s2 + 2.0 * M * a * a * s2 * s2 * (sigma - 2.0 * r * r) / sig_sq
        dg[3, 3, 2] = (2.0 * (r * r + a * a) * s * c
                       + 2.0 * M * a * a * r * (4.0 * s2 * s * c * sigma - s2 * s2 * sig_th) / sig_sq)
        return dg

    def christoffel(self, x_bl) -> np.ndarray:
        return christoffel_from_derivatives(self.inverse_metric(x_bl), self.metric_derivatives(x_bl))
