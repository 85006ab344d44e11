# src/kludgesf/orbits/mino_time.py
"""
Mino 时间 λ 与 BL 坐标时间 t 之间的解析关系。

Kerr 测地线满足 dt/dλ = V_t(r, θ)：
    V_t = E [ (r²+a²)²/Δ - a² sin²θ ] + a L [ 1 - (r²+a²)/Δ ],   Δ = r² - 2Mr + a²
于是 dλ/dt = 1 / V_t。高阶导数 d^nλ/dt^n 依赖轨道的 d^k r/dt^k, d^k θ/dt^k (k < n)。

实现方式：把 r(t), θ(t) 在求值点展开成截断 Taylor 级数（系数 x_k = d^k x/dt^k / k!），
在级数上做乘法、倒数、sin 运算，得到 1/V_t 的级数 g，然后
    d^{n}λ/dt^{n} = (n-1)! g_{n-1}
结果与逐阶手工展开的表达式精确一致（只差舍入误差）。

沿测地线求值时 (geodesic_lambda_time_derivatives)，轨道的高阶导数不必由采样给出：
Mino 时间下 r, θ 方程解耦，d²r/dλ² = R'(r)/2, d²θ/dλ² = Θ'(θ)/2，
从 (x, dx/dλ) 出发逐阶递推出 r(λ), θ(λ) 的级数，需要 E, L 与 Carter 常数 C。

与其他模块的关系：
- multipole.derivatives: Mino 时间分支的链式法则需要 dλ/dt ... d⁶λ/dt⁶；
- orbits.trajectory: 按 Mino 时间均匀采样参考轨道时用 dt/dλ 积分出 t(λ)。
"""

from __future__ import annotations

from math import factorial

import numpy as np


def dt_dlambda(x_bl, a: float, M: float, E: float, L: float):
    """V_t(r, θ)，x_bl = (r, θ, ϕ)，支持 (3,) 与 (3, N)。"""
    r, th = x_bl[0], x_bl[1]
    r2a2 = r * r + a * a
    delta = r * r - 2.0 * M * r + a * a
    return (E * (r2a2 * r2a2 / delta - a * a * np.sin(th)**2)
            + a * L * (1.0 - r2a2 / delta))


def dlambda_dt(x_bl, a: float, M: float, E: float, L: float):
    return 1.0 / dt_dlambda(x_bl, a, M, E, L)


# ---------------------------------------------------------------------
# 截断 Taylor 级数运算（系数数组的第 0 轴为阶数）
# ---------------------------------------------------------------------

def _series_mul(p: np.ndarray, q: np.ndarray) -> np.ndarray:
    n = len(p)
    out = np.zeros_like(p)
    for k in range(n):
        for i in range(k + 1):
            out[k] = out[k] + p[i] * q[k - i]
    return out


def _series_recip(p: np.ndarray) -> np.ndarray:
    n = len(p)
    out = np.zeros_like(p)
    out[0] = 1.0 / p[0]
    for k in range(1, n):
        acc = np.zeros_like(p[0])
        for i in range(1, k + 1):
            acc = acc + p[i] * out[k - i]
        out[k] = -acc * out[0]
    return out


def _series_sin_cos(p: np.ndarray):
    """
    s = sin(p), c = cos(p)：
        k s_k =  Σ_{j=1..k} j p_j c_{k-j}
        k c_k = -Σ_{j=1..k} j p_j s_{k-j}
    """
    n = len(p)
    s = np.zeros_like(p)
    c = np.zeros_like(p)
    s[0] = np.sin(p[0])
    c[0] = np.cos(p[0])
    for k in range(1, n):
        for j in range(1, k + 1):
            s[k] = s[k] + j * p[j] * c[k - j] / k
            c[k] = c[k] - j * p[j] * s[k - j] / k
    return s, c


def _taylor(derivs, component: int) -> np.ndarray:
    return np.array([np.asarray(d, dtype=float)[component] / factorial(k)
                     for k, d in enumerate(derivs)])


def _series_deriv(p: np.ndarray) -> np.ndarray:
    """d/dx 的系数；最高阶系数变为 0（截断）。"""
    out = np.zeros_like(p)
    k = np.arange(1, len(p)).reshape((-1,) + (1,) * (p.ndim - 1))
    out[:-1] = k * p[1:]
    return out


def _vt_series(r: np.ndarray, th: np.ndarray, a: float, M: float, E: float, L: float) -> np.ndarray:
    a2 = a * a
    r2a2 = _series_mul(r, r)
    r2a2[0] = r2a2[0] + a2
    delta = r2a2 - 2.0 * M * r
    ratio = _series_mul(r2a2, _series_recip(delta))
    s, _ = _series_sin_cos(th)
    sin2 = _series_mul(s, s)

    vt = E * (_series_mul(r2a2, ratio) - a2 * sin2) - a * L * ratio
    vt[0] = vt[0] + a * L
    return vt


def lambda_time_derivatives(derivs, a: float, M: float, E: float, L: float) -> list:
    """
    derivs = [x, dx/dt, d²x/dt², ..., dⁿx/dtⁿ]（BL 坐标 r, θ, ϕ）
    返回 [dλ/dt, d²λ/dt², ..., d^{n+1}λ/dt^{n+1}]。
    每一项的形状与 derivs[0][0] 相同（单点为标量，批量为 (N,)）。
    """
    r = _taylor(derivs, 0)
    th = _taylor(derivs, 1)
    g = _series_recip(_vt_series(r, th, a, M, E, L))
    return [factorial(k) * g[k] for k in range(len(g))]


# ---------------------------------------------------------------------
# 沿测地线的 d^nλ/dt^n：r(λ), θ(λ) 由 Mino 时间下解耦的测地线方程给出
# ---------------------------------------------------------------------

def _radial_force(r: np.ndarray, a: float, M: float, E: float, L: float, C: float) -> np.ndarray:
    """
    d²r/dλ² = R'(r)/2 = 2 E r P - (r - M) K - r Δ，
    R = P² - Δ K,  P = E (r² + a²) - a L,  K = r² + (L - a E)² + C
    """
    r2 = _series_mul(r, r)
    P = E * r2
    P[0] = P[0] + E * a * a - a * L
    K = r2.copy()
    K[0] = K[0] + (L - a * E)**2 + C
    delta = r2 - 2.0 * M * r
    delta[0] = delta[0] + a * a
    r_minus_m = r.copy()
    r_minus_m[0] = r_minus_m[0] - M
    return 2.0 * E * _series_mul(r, P) - _series_mul(r_minus_m, K) - _series_mul(r, delta)


def _polar_force(th: np.ndarray, a: float, E: float, L: float) -> np.ndarray:
    """
    d²θ/dλ² = Θ'(θ)/2 = a²(1 - E²) cosθ sinθ + L² cosθ / sin³θ，
    Θ = C - cos²θ [a²(1 - E²) + L² / sin²θ]
    """
    s, c = _series_sin_cos(th)
    s3 = _series_mul(s, _series_mul(s, s))
    return (a * a * (1.0 - E * E) * _series_mul(c, s)
            + L * L * _series_mul(c, _series_recip(s3)))


def geodesic_lambda_series(x_bl, dx_dlambda, a: float, M: float, E: float, L: float, C: float,
                           order: int):
    """
    r(λ), θ(λ) 在求值点的 Taylor 系数 (0..order)，由 (x, dx/dλ) 出发逐阶递推：
        r_{k+2} = [R'/2]_k / ((k+1)(k+2))
    """
    shape = (order + 1,) + np.shape(x_bl[0])
    r = np.zeros(shape)
    th = np.zeros(shape)
    r[0], th[0] = x_bl[0], x_bl[1]
    if order >= 1:
        r[1], th[1] = dx_dlambda[0], dx_dlambda[1]
    for k in range(order - 1):
        fr = _radial_force(r, a, M, E, L, C)
        ft = _polar_force(th, a, E, L)
        r[k + 2] = fr[k] / ((k + 1) * (k + 2))
        th[k + 2] = ft[k] / ((k + 1) * (k + 2))
    return r, th


def geodesic_lambda_time_derivatives(x_bl, dx_dt, a: float, M: float, E: float, L: float,
                                     C: float, n: int = 6) -> list:
    """
    沿 Kerr 测地线返回 [dλ/dt, ..., dⁿλ/dtⁿ]，只用到 (x, dx/dt)。

    dx/dλ = V_t dx/dt 给出初值，高阶 λ 导数全部来自测地线方程，
    然后 d/dt = (1/V_t) d/dλ 作用 n-1 次：
        dλ/dt = g,  d^{k+1}λ/dt^{k+1} = g · d/dλ (d^kλ/dt^k),   g = 1/V_t(λ)
    """
    vt0 = dt_dlambda(x_bl, a, M, E, L)
    dx_dlambda = [vt0 * dx_dt[0], vt0 * dx_dt[1]]
    r, th = geodesic_lambda_series(x_bl, dx_dlambda, a, M, E, L, C, n - 1)
    g = _series_recip(_vt_series(r, th, a, M, E, L))

    out = []
    f = g
    for _ in range(n):
        out.append(f[0])
        f = _series_mul(g, _series_deriv(f))
    return out
